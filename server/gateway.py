# =============================================================================
# Person Narrator - Inference Gateway
# =============================================================================
# Composes the session manager, result selector, person ranker and attribute
# extractor into the two request modes exposed over HTTP:
#
#   detect   - fast person detection on the detect session.
#   detailed - detect first, then ask the visual-intelligence session about
#              the nearest person and attach gender/activity to it.
# =============================================================================

import logging
import time

from server.attributes import extract_attributes
from server.ranking import rank_people
from server.selection import select_best_frame
from server.sessions import InferenceEndpoint, SessionContext
from shared.schemas import InferResponse

logger = logging.getLogger(__name__)


class InferenceGateway:
    """
    Request-level orchestration over the shared inference sessions.

    Args:
        sessions: Context owning the detect and detailed sessions.
    """

    def __init__(self, sessions: SessionContext):
        self._sessions = sessions

    async def detect(self, image: bytes, mime_type: str = "image/jpeg") -> InferResponse:
        """
        Run person detection on one image.

        Args:
            image:     Encoded image bytes.
            mime_type: MIME type of ``image``.

        Returns:
            InferResponse with ranked people (gender/activity unset).
        """

        async def _detect(endpoint: InferenceEndpoint) -> InferResponse:
            start = time.time()
            best = await select_best_frame(endpoint.process(image, mime_type))
            frame = best or {}
            people = rank_people(best, frame.get("source_width"))
            logger.info(
                "Detect -> %d person(s) (%.1fms)",
                len(people), (time.time() - start) * 1000.0,
            )
            return InferResponse(
                source_width=frame.get("source_width"),
                source_height=frame.get("source_height"),
                people=people,
            )

        return await self._sessions.detect.run_exclusive(_detect)

    async def detailed(
        self,
        image: bytes,
        mime_type: str = "image/jpeg",
        debug: bool = False,
    ) -> InferResponse:
        """
        Detect people, then characterize the top-ranked one.

        Only ``people[0]`` receives gender/activity; the other records stay
        unclassified. When nobody was detected the attributes are computed
        but have nowhere to go.

        Args:
            image:     Encoded image bytes (the full image is sent to both passes).
            mime_type: MIME type of ``image``.
            debug:     Include ``vi_debug`` extraction diagnostics.
        """
        detected = await self.detect(image, mime_type)

        async def _describe(endpoint: InferenceEndpoint) -> InferResponse:
            start = time.time()
            best = await select_best_frame(endpoint.process(image, mime_type))
            attributes = extract_attributes(best, include_debug=debug)
            logger.info(
                "Detailed -> gender=%s activity=%s (%.1fms)",
                attributes.gender, attributes.activity, (time.time() - start) * 1000.0,
            )

            people = list(detected.people)
            if people:
                people[0] = people[0].model_copy(
                    update={
                        "gender": attributes.gender,
                        "gender_confidence": attributes.gender_confidence,
                        "activity": attributes.activity,
                        "activity_confidence": attributes.activity_confidence,
                    }
                )
            return detected.model_copy(update={"people": people, "vi_debug": attributes.debug})

        return await self._sessions.detailed.run_exclusive(_describe)
