from __future__ import annotations

import argparse
import asyncio
import json
import sys

from core.config import settings
from core.logging_config import configure_logging
from domain.common.exceptions import FileUploadException
from domain.upload import UploadFile
from application.services.upload_service import UploadOptions
from application.utils.files import format_file_size
from infrastructure.external.api_clients import create_upload_service


def _print_progress(percent: int) -> None:
    print(f"\rprogress: {percent:3d}%", end="", flush=True)


async def run(paths: list[str], owner_type: str, owner_id: str, s3_only: bool, batch: bool) -> int:
    files = [UploadFile.from_path(p) for p in paths]
    for f in files:
        print(f"{f.name}  {f.mime_type}  {format_file_size(f.size)}")

    async with create_upload_service(settings) as service:
        try:
            if batch:
                options = UploadOptions(owner_type=owner_type, owner_id=owner_id, on_progress=_print_progress)
                results = await service.upload_multiple_files(files, options, full_upload=not s3_only)
            elif s3_only:
                results = [
                    await service.upload_file_to_s3_only(f, owner_type, owner_id, on_progress=_print_progress)
                    for f in files
                ]
            else:
                options = UploadOptions(owner_type=owner_type, owner_id=owner_id, on_progress=_print_progress)
                results = [await service.upload_file(f, options) for f in files]
        except FileUploadException as exc:
            print()
            print(f"upload failed [{exc.code.value}]: {exc.localized()}", file=sys.stderr)
            return 1

    print()
    print(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
    return 0


def main() -> None:
    ap = argparse.ArgumentParser(description="Upload files through the presign/transfer/register pipeline")
    ap.add_argument("paths", nargs="+", help="Files to upload")
    ap.add_argument("--owner-type", default="post", help="post, popup, faculty, header, feedback, course")
    ap.add_argument("--owner-id", required=True)
    ap.add_argument("--s3-only", action="store_true", help="Skip registration; print storage URLs only")
    ap.add_argument("--batch", action="store_true", help="Fail-fast batch instead of one call per file")
    args = ap.parse_args()

    configure_logging()
    code = asyncio.run(run(args.paths, args.owner_type, args.owner_id, args.s3_only, args.batch))
    sys.exit(code)


if __name__ == "__main__":
    main()
