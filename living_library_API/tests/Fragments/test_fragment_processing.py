# test_fragment_processing.py
#
#
# Imports
from unittest.mock import patch
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from living_library_API.app.core.exceptions import ForbiddenError, NotFoundError, UpstreamServiceError
from living_library_API.app.core.Fragments.Fragment_Processing import FragmentProcessor
from living_library_API.tests.test_utils import (
    FakeClassificationService,
    FakeEmbeddingService,
    FakeTranscriptionService,
    make_fragment,
)
#
#######################################################################################################################
#
# Functions:


@pytest.fixture
def transcription():
    return FakeTranscriptionService({
        "http://testserver/clip.mp3": "  Grandpa laughing  ",
        "http://testserver/reel.mp4": "waves on the shore",
    })


@pytest.fixture
def processor(library_db, transcription):
    return FragmentProcessor(library_db, transcription, FakeEmbeddingService(),
                             FakeClassificationService(emotions=['joy', 'nostalgia'], themes=['family']))


@pytest.mark.asyncio
async def test_process_marks_fragment_ready(processor, library_db, owner):
    fragment = make_fragment(library_db, owner, status="PROCESSING")

    processed = await processor.process(fragment["id"], owner["id"])

    assert processed["status"] == "READY"
    assert processed["system_emotions"] == ['joy', 'nostalgia']
    assert processed["system_themes"] == ['family']
    stored = library_db.get_fragment_by_id(fragment["id"], include_embedding=True)
    assert stored["embedding"] == [1.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_process_transcribes_audio_and_video_only(processor, library_db, owner, transcription):
    media = [
        {"type": "audio", "url": "http://testserver/clip.mp3"},
        {"type": "image", "url": "http://testserver/photo.jpg"},
        {"type": "video", "url": "http://testserver/reel.mp4"},
    ]
    fragment = make_fragment(library_db, owner, media=media)

    processed = await processor.process(fragment["id"], owner["id"])

    assert transcription.calls == ["http://testserver/clip.mp3", "http://testserver/reel.mp4"]
    assert processed["transcript"] == "Grandpa laughing\nwaves on the shore"


@pytest.mark.asyncio
async def test_process_embeds_title_body_and_transcript(library_db, owner, transcription):
    embedding = FakeEmbeddingService()
    processor = FragmentProcessor(library_db, transcription, embedding, FakeClassificationService())
    fragment = make_fragment(library_db, owner, title="Beach", body="Sand everywhere.",
                             media=[{"type": "audio", "url": "http://testserver/clip.mp3"}])

    await processor.process(fragment["id"], owner["id"])

    assert embedding.calls == ["Beach Sand everywhere. Grandpa laughing"]


@pytest.mark.asyncio
async def test_process_failure_marks_fragment_failed(library_db, owner, transcription):
    processor = FragmentProcessor(library_db, transcription, FakeEmbeddingService(fail=True),
                                  FakeClassificationService())
    fragment = make_fragment(library_db, owner)

    with pytest.raises(UpstreamServiceError):
        await processor.process(fragment["id"], owner["id"])

    assert library_db.get_fragment_by_id(fragment["id"])["status"] == "FAILED"


@pytest.mark.asyncio
async def test_process_survives_link_failure(processor, library_db, owner):
    fragment = make_fragment(library_db, owner)
    with patch("living_library_API.app.core.Fragments.Fragment_Processing.recompute_links",
               side_effect=NotFoundError("gone")):
        processed = await processor.process(fragment["id"], owner["id"])
    assert processed["status"] == "READY"


@pytest.mark.asyncio
async def test_process_links_to_earlier_fragments(processor, library_db, owner):
    first = make_fragment(library_db, owner)
    second = make_fragment(library_db, owner)
    await processor.process(first["id"], owner["id"])
    await processor.process(second["id"], owner["id"])

    targets = {link["to_id"] for link in library_db.get_links_from(second["id"])}
    assert targets == {first["id"]}


@pytest.mark.asyncio
async def test_process_missing_fragment(processor, owner):
    with pytest.raises(NotFoundError):
        await processor.process("no-such-fragment", owner["id"])


@pytest.mark.asyncio
async def test_process_fragment_of_other_user(processor, library_db, owner, other_user):
    fragment = make_fragment(library_db, other_user, visibility="PUBLIC")
    with pytest.raises(ForbiddenError):
        await processor.process(fragment["id"], owner["id"])
    assert library_db.get_fragment_by_id(fragment["id"])["status"] == "READY"

#
# End of test_fragment_processing.py
#######################################################################################################################
