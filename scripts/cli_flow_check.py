# /scripts/cli_flow_check.py
from __future__ import annotations
import argparse, sys, time, os, base64
import requests

def print_step(title):
    print(f"\n=== {title} ===")

def timed_post(url, **kw):
    t0 = time.perf_counter()
    r = requests.post(url, **kw)
    dt = (time.perf_counter() - t0) * 1000
    print(f"HTTP {r.status_code} in {dt:.0f} ms")
    return r

def do_identify(base, image_path):
    print_step("IDENTIFY /v1/identify-photo")
    fn = os.path.basename(image_path)
    ct = "image/png" if fn.lower().endswith(".png") else "image/jpeg"
    with open(image_path, "rb") as f:
        r = timed_post(f"{base}/v1/identify-photo", files={"img": (fn, f.read(), ct)}, timeout=60)
    if not r.ok:
        print(r.text); sys.exit(1)
    data = r.json()
    print("identified:", data)
    return data

def do_fetch(base, identity):
    print_step("FETCH /v1/leaflet/fetch")
    r = timed_post(f"{base}/v1/leaflet/fetch", json=identity, timeout=120)
    if not r.ok:
        print(r.text); sys.exit(1)
    data = r.json()
    print("status :", data.get("status"), "| tier:", data.get("tier"), "| attempts:", data.get("attempts"))
    m = data.get("match") or {}
    if m:
        print("match  :", m.get("displayName"), "| combined:", m.get("combinedSimilarity"),
              "| low confidence" if data.get("lowConfidence") else "")
    print("message:", data.get("message"))
    return data

def do_process(base, pdf_b64):
    print_step("PROCESS /v1/leaflet/process")
    r = timed_post(f"{base}/v1/leaflet/process", json={"pdfBase64": pdf_b64}, timeout=180)
    if not r.ok:
        print(r.text); return None
    data = r.json()
    print("success:", data.get("success"), "| chunks:", data.get("documentCount"))
    return data

def do_query(base, pdf_b64, question):
    print_step(f"QUERY /v1/leaflet/query: {question}")
    r = timed_post(f"{base}/v1/leaflet/query", json={"pdfBase64": pdf_b64, "question": question}, timeout=120)
    if not r.ok:
        print(r.text); return None
    data = r.json()
    print("success:", data.get("success"), "| cited pages:", data.get("citedPages"))
    print("answer :", (data.get("answer") or "")[:600])
    return data

def main():
    ap = argparse.ArgumentParser(description="Folheto-AI flow checker (identify/fetch/process/query).")
    ap.add_argument("--base", default="http://127.0.0.1:8000", help="Base URL FastAPI server")
    ap.add_argument("--name", default="", help="Nome do medicamento")
    ap.add_argument("--substance", default="", help="Substância ativa / DCI")
    ap.add_argument("--dosage", default="", help="Dosagem, e.g. '500 mg'")
    ap.add_argument("--image", help="Packaging photo; replaces --name/--substance/--dosage")
    ap.add_argument("--pdf", help="Local PDF; skips the portal fetch")
    ap.add_argument("--save", help="Write the fetched PDF here")
    ap.add_argument("-q", "--question", action="append", default=[], help="Question (repeatable)")
    args = ap.parse_args()

    print(f"Base   : {args.base}")
    ok = True

    if args.pdf:
        with open(args.pdf, "rb") as f:
            pdf_b64 = base64.b64encode(f.read()).decode("ascii")
    else:
        identity = {"name": args.name, "activeSubstance": args.substance, "dosage": args.dosage}
        if args.image:
            identity = do_identify(args.base, args.image)
        fetch_res = do_fetch(args.base, identity)
        pdf_b64 = fetch_res.get("document")
        if not pdf_b64:
            print("\nRESULT: NOT FOUND ⚠️")
            return 1
        if args.save:
            with open(args.save, "wb") as f:
                f.write(base64.b64decode(pdf_b64))
            print("saved  :", args.save)

    proc = do_process(args.base, pdf_b64)
    if not proc or not proc.get("success"):
        ok = False

    for q in args.question or ["Para que serve este medicamento?"]:
        res = do_query(args.base, pdf_b64, q)
        ok = ok and bool(res and res.get("success"))

    print("\nRESULT:", "PASS ✅" if ok else "CHECK NEEDED ⚠️")
    return 0 if ok else 1

if __name__ == "__main__":
    sys.exit(main())
