import asyncio

import pytest

from application.services.upload_state import (
    FileUploadState,
    ImageUploadState,
    MultipleFileUploadState,
)
from domain.common.exceptions import FileUploadException, UnsupportedMimeTypeException
from domain.upload import UploadStage
from shared.codes import UploadErrorCode


@pytest.mark.asyncio
async def test_single_state_tracks_a_successful_upload(upload_service, make_file):
    successes = []
    state = FileUploadState(upload_service, "post", 42, on_success=lambda r, f: successes.append((r, f)))
    snapshots = []
    state.subscribe(snapshots.append)
    photo = make_file("photo.jpg", 1024, "image/jpeg")

    result = await state.upload(photo)

    assert snapshots[0].uploading is True and snapshots[0].progress == 0
    assert state.uploading is False
    assert state.progress == 100
    assert state.stage is UploadStage.COMPLETED
    assert state.result == result
    assert snapshots[-1].result == result
    assert successes == [(result, photo)]


@pytest.mark.asyncio
async def test_single_state_reports_failure_and_resets(upload_service, backend, make_file):
    errors = []
    state = FileUploadState(upload_service, "post", "42", on_error=errors.append)
    backend.fail_storage["photo.jpg"] = 403

    with pytest.raises(FileUploadException):
        await state.upload(make_file("photo.jpg", 10, "image/jpeg"))

    assert state.uploading is False
    assert state.result is None
    assert state.stage is UploadStage.FAILED
    assert [e.code for e in errors] == [UploadErrorCode.UPLOAD_FAILED]

    state.reset()
    assert (state.uploading, state.progress, state.result, state.error) == (False, 0, None, None)
    assert state.stage is UploadStage.IDLE


@pytest.mark.asyncio
async def test_storage_only_mode_skips_registration(upload_service, backend, make_file):
    state = FileUploadState(upload_service, "feedback", "5")

    result = await state.upload(make_file("shot.png", 10, "image/png"), full_upload=False)

    assert result.file_id is None
    assert backend.register_calls == []


@pytest.mark.asyncio
async def test_concurrent_states_do_not_share_progress(upload_service, make_file):
    first = FileUploadState(upload_service, "post", "1")
    second = FileUploadState(upload_service, "post", "2")
    first_seen: list[int] = []
    second_seen: list[int] = []
    first.subscribe(lambda snap: first_seen.append(snap.progress))
    second.subscribe(lambda snap: second_seen.append(snap.progress))

    first_result, second_result = await asyncio.gather(
        first.upload(make_file("a.jpg", 600 * 1024, "image/jpeg")),
        second.upload(make_file("b.jpg", 600 * 1024, "image/jpeg")),
    )

    for seen in (first_seen, second_seen):
        assert seen[0] == 0
        assert seen[-1] == 100
        assert seen == sorted(seen)
    assert first_result.file_key != second_result.file_key
    assert first.result is first_result
    assert second.result is second_result


@pytest.mark.asyncio
async def test_unsubscribed_listener_is_not_called(upload_service, make_file):
    state = FileUploadState(upload_service, "post", "1")
    seen = []
    unsubscribe = state.subscribe(seen.append)
    unsubscribe()

    await state.upload(make_file("a.jpg", 10, "image/jpeg"))

    assert seen == []


@pytest.mark.asyncio
async def test_image_state_sets_and_clears_preview(upload_service, backend, make_file):
    state = ImageUploadState(upload_service, "header", "1")

    result = await state.upload(make_file("banner.webp", 10, "image/webp"))
    assert state.image_url == result.public_url == "https://cdn.test/header/1/banner.webp"
    assert state.file_key == "header/1/banner.webp"
    assert state.file_name == "banner.webp"
    assert backend.register_calls == []

    with pytest.raises(UnsupportedMimeTypeException):
        await state.upload(make_file("doc.pdf", 10, "application/pdf"))
    assert state.image_url is None
    assert state.file_name is None
    assert state.file_key is None


@pytest.mark.asyncio
async def test_multiple_state_accumulates_and_removes(upload_service, make_file):
    state = MultipleFileUploadState(upload_service, "course", "11")

    await state.upload_files([make_file("a.pdf", 10, "application/pdf")])
    await state.upload_files([make_file("b.pdf", 10, "application/pdf"), make_file("c.jpg", 10, "image/jpeg")])
    assert [f.original_name for f in state.files] == ["a.pdf", "b.pdf", "c.jpg"]

    removed = state.remove_file(1)
    assert removed.original_name == "b.pdf"
    assert [f.original_name for f in state.files] == ["a.pdf", "c.jpg"]

    state.reset()
    assert state.files == []
    assert state.progress == 0


@pytest.mark.asyncio
async def test_multiple_state_fail_fast_keeps_previous_files(upload_service, backend, make_file):
    state = MultipleFileUploadState(upload_service, "course", "11")
    await state.upload_files([make_file("a.pdf", 10, "application/pdf")])
    backend.fail_presign["c.pdf"] = 502

    with pytest.raises(FileUploadException) as ei:
        await state.upload_files([make_file("b.pdf", 10, "application/pdf"), make_file("c.pdf", 10, "application/pdf")])

    assert ei.value.code == UploadErrorCode.MULTIPLE_UPLOAD_FAILED
    assert [f.original_name for f in state.files] == ["a.pdf"]
    assert state.uploading is False


@pytest.mark.asyncio
async def test_upload_each_continues_past_failures(upload_service, backend, make_file):
    state = MultipleFileUploadState(upload_service, "course", "11")
    backend.fail_presign["b.pdf"] = 500

    batch = await state.upload_each([
        make_file("a.pdf", 10, "application/pdf"),
        make_file("b.pdf", 10, "application/pdf"),
        make_file("c.pdf", 10, "application/pdf"),
    ])

    assert batch.finalized
    assert [r.original_name for r in batch.results] == ["a.pdf", "c.pdf"]
    assert [e.code for e in batch.errors] == [UploadErrorCode.UPLOAD_FAILED]
    assert [f.original_name for f in state.files] == ["a.pdf", "c.pdf"]
    assert backend.presigned_names() == ["a.pdf", "b.pdf", "c.pdf"]
    assert state.progress == 100
