# Fragment_Processing.py
# Description: The processing pipeline that turns a PROCESSING fragment into a READY one.
#
# Imports
from typing import Any, Dict, List
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    ClassificationService,
    EmbeddingService,
    TranscriptionService,
)
from living_library_API.app.core.AI_Services.OpenAI_Services import EMBEDDING_MAX_CHARS
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.exceptions import ForbiddenError, LibraryError, NotFoundError
from living_library_API.app.core.Fragments.Link_Builder import recompute_links
#
#######################################################################################################################
#
# Functions:

TRANSCRIBABLE_MEDIA_TYPES = ('audio', 'video')


class FragmentProcessor:
    """
    Pipeline steps, in order:
        1. transcribe every audio/video attachment
        2. embed "{title} {body} {transcript}" (truncated)
        3. classify emotions and themes of the same text
        4. store the results with status READY
        5. recompute links (best-effort)

    Any failure in steps 1-4 marks the fragment FAILED and re-raises.
    """

    def __init__(self, db: LibraryDB, transcription: TranscriptionService, embedding: EmbeddingService,
                 classification: ClassificationService):
        self.db = db
        self.transcription = transcription
        self.embedding = embedding
        self.classification = classification

    async def _transcribe_media(self, media: List[Dict[str, Any]]) -> str:
        transcripts = []
        for item in media:
            if item.get('type') in TRANSCRIBABLE_MEDIA_TYPES and item.get('url'):
                text = await self.transcription.transcribe(item['url'])
                if text:
                    transcripts.append(text.strip())
        return "\n".join(transcripts)

    async def process(self, fragment_id: str, user_id: str) -> Dict[str, Any]:
        fragment = self.db.get_fragment_by_id(fragment_id)
        if not fragment:
            raise NotFoundError("Fragment not found", context={"fragment_id": fragment_id})
        if fragment['user_id'] != user_id:
            raise ForbiddenError("Access denied", context={"fragment_id": fragment_id})

        logger.info(f"Processing fragment {fragment_id}")
        self.db.set_fragment_status(fragment_id, 'PROCESSING')
        try:
            transcript = await self._transcribe_media(fragment.get('media') or [])
            text = f"{fragment['title']} {fragment['body']} {transcript}".strip()
            embedding = await self.embedding.embed(text[:EMBEDDING_MAX_CHARS])
            emotions = await self.classification.classify_emotions(text)
            themes = await self.classification.classify_themes(text)
            processed = self.db.save_processing_results(fragment_id, transcript, embedding, emotions, themes)
        except Exception as e:
            logger.error(f"Processing failed for fragment {fragment_id}: {e}")
            self.db.set_fragment_status(fragment_id, 'FAILED')
            raise

        try:
            recompute_links(self.db, fragment_id, user_id)
        except LibraryError as e:
            logger.warning(f"Link recomputation after processing failed for fragment {fragment_id}: {e}")

        logger.info(f"Fragment {fragment_id} is READY ({len(emotions)} emotions, {len(themes)} themes)")
        return processed

#
# End of Fragment_Processing.py
#######################################################################################################################
