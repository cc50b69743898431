import pytest

from application.services.upload_service import UploadOptions
from domain.common.exceptions import DomainValidationException, MultipleUploadFailedException
from shared.codes import UploadErrorCode

MiB = 1024 * 1024


@pytest.mark.asyncio
async def test_batch_uploads_sequentially_in_input_order(upload_service, backend, make_file):
    files = [
        make_file("a.jpg", 300 * 1024, "image/jpeg"),
        make_file("b.pdf", 600 * 1024, "application/pdf"),
        make_file("c.png", 10, "image/png"),
    ]
    progress: list[int] = []

    results = await upload_service.upload_multiple_files(
        files,
        UploadOptions(owner_type="post", owner_id="9", on_progress=progress.append),
    )

    assert [r.original_name for r in results] == ["a.jpg", "b.pdf", "c.png"]
    assert [r.file_id for r in results] == ["1", "2", "3"]
    assert backend.presigned_names() == ["a.jpg", "b.pdf", "c.png"]

    assert progress[0] == 0
    assert progress[-1] == 100
    assert all(later >= earlier for earlier, later in zip(progress, progress[1:]))
    assert progress.count(100) == 1


@pytest.mark.asyncio
async def test_batch_fails_fast_and_names_the_file(upload_service, backend, make_file):
    backend.fail_presign["b.pdf"] = 500
    files = [
        make_file("a.jpg", 10, "image/jpeg"),
        make_file("b.pdf", 10, "application/pdf"),
        make_file("c.png", 10, "image/png"),
    ]
    progress: list[int] = []

    with pytest.raises(MultipleUploadFailedException) as ei:
        await upload_service.upload_multiple_files(
            files,
            UploadOptions(owner_type="post", owner_id="9", on_progress=progress.append),
        )

    err = ei.value
    assert err.code == UploadErrorCode.MULTIPLE_UPLOAD_FAILED
    assert err.message == 'File "b.pdf" upload failed: presign rejected'
    assert err.file_name == "b.pdf"
    assert err.index == 1
    assert err.details["cause_code"] == UploadErrorCode.UPLOAD_FAILED.value

    # c.png is never attempted; a.jpg stays uploaded and registered
    assert backend.presigned_names() == ["a.jpg", "b.pdf"]
    assert "post/9/a.jpg" in backend.objects
    assert [r["fileName"] for r in backend.registered] == ["a.jpg"]
    assert max(progress) < 100


@pytest.mark.asyncio
async def test_batch_preflight_failure_wraps_validation_code(upload_service, backend, make_file):
    files = [
        make_file("a.jpg", 10, "image/jpeg"),
        make_file("huge.jpg", 15 * MiB, "image/jpeg"),
    ]

    with pytest.raises(MultipleUploadFailedException) as ei:
        await upload_service.upload_multiple_files(files, UploadOptions(owner_type="post", owner_id="9"))

    assert ei.value.details["cause_code"] == UploadErrorCode.FILE_TOO_LARGE.value
    assert "10MB" in ei.value.message
    assert backend.presigned_names() == ["a.jpg"]


@pytest.mark.asyncio
async def test_batch_of_nothing_makes_no_requests(upload_service, backend):
    assert await upload_service.upload_multiple_files([], UploadOptions(owner_type="post", owner_id="9")) == []
    assert backend.requests == []


@pytest.mark.asyncio
async def test_batch_storage_only(upload_service, backend, make_file):
    files = [make_file("a.png", 10, "image/png"), make_file("b.png", 10, "image/png")]

    results = await upload_service.upload_multiple_files(
        files,
        UploadOptions(owner_type="popup", owner_id="3"),
        full_upload=False,
    )

    assert [r.file_id for r in results] == [None, None]
    assert [r.file_key for r in results] == ["popup/3/a.png", "popup/3/b.png"]
    assert backend.register_calls == []


@pytest.mark.asyncio
async def test_blank_owner_is_rejected_before_the_batch_starts(upload_service, backend, make_file):
    with pytest.raises(DomainValidationException) as ei:
        await upload_service.upload_multiple_files(
            [make_file("a.jpg", 10, "image/jpeg")],
            UploadOptions(owner_type="post", owner_id="   "),
        )

    assert ei.value.message_key == "file.owner_id.empty"
    assert backend.requests == []


def test_options_strip_owner_id():
    assert UploadOptions(owner_type="POST", owner_id=" 9 ").owner_id == "9"
