# scripts/sniff_portal.py
# Run one portal search directly (no API) and dump rows + captured PDF size.
# Useful when INFARMED markup changes and config/portal.yaml needs new selectors.
import argparse
import asyncio
import logging

from app.domain.models import MedicineIdentity, SearchAttempt
from app.domain.similarity import rows_to_candidates
from app.infra.portal.infarmed_driver import PlaywrightPortalSession
from app.infra.portal.selectors import PortalSelectors


async def main(args):
    sel = PortalSelectors.load(args.cfg)
    identity = MedicineIdentity(name=args.name, active_substance=args.substance, dosage=args.dosage)
    attempt = SearchAttempt(
        tier=0, label="manual",
        name=args.name or None, active_substance=args.substance or None, dosage=args.dosage or None,
    )
    async with PlaywrightPortalSession(selectors=sel) as s:
        if not await s.search(attempt):
            print("no results")
            return
        rows = await s.result_rows()
        for i, cells in enumerate(rows):
            print(f"ROW {i}: {cells}")
        for c in rows_to_candidates(rows, identity, sel.columns):
            print(f"  → {c.display_name!r} / {c.active_substance_text!r} combined={c.combined_similarity:.2f}")
        if args.click is not None:
            await s.open_document(args.click)
            pdf = await s.await_first_pdf(args.timeout_ms)
            print("PDF:", len(pdf) if pdf else None, "bytes from", s.interceptor.captured_url)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", default="")
    ap.add_argument("--substance", default="")
    ap.add_argument("--dosage", default="")
    ap.add_argument("--click", type=int, help="row index whose document link to click")
    ap.add_argument("--timeout-ms", type=int, default=30000)
    ap.add_argument("--cfg", default=None, help="portal selectors YAML")
    asyncio.run(main(ap.parse_args()))
