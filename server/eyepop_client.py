# =============================================================================
# Person Narrator - EyePop Inference Adapter
# =============================================================================
# Adapts the EyePop async worker SDK to the narrow interface the gateway
# needs: connect a profile, push one image, stream back result frames, and
# disconnect. The detect profile uses the configured person-detection pop;
# the detailed profile uses a transient pop configured with an
# image-contents component and a short natural-language prompt.
# =============================================================================

import io
import logging
from typing import Any, AsyncIterator, Dict

from server.sessions import InferenceProfile

logger = logging.getLogger(__name__)

TRANSIENT_POP_ID = "transient"

# Asks for the closest person's attributes only; short answers parse best.
DETAILED_PROMPT = " ".join(
    [
        "Focus on the closest person in the image (if any).",
        "Return gender as Male/Female/null.",
        "Return activity as one of: walking, running, sitting, standing, drinking, eating, talking, or null.",
        "If unsure, use null.",
        "Keep the answer short.",
    ]
)


class EyePopEndpoint:
    """
    Connected EyePop worker endpoint.

    Args:
        endpoint: An async ``WorkerEndpoint`` from the eyepop SDK, already connected.
        profile:  The profile this endpoint serves (used for logging).
    """

    def __init__(self, endpoint, profile: InferenceProfile):
        self._endpoint = endpoint
        self._profile = profile

    async def process(self, image: bytes, mime_type: str) -> AsyncIterator[Dict[str, Any]]:
        """
        Upload one image and yield every prediction the job produces.

        The service may emit several improving results for a single image;
        iteration ends when the job reports no further predictions.
        """
        job = await self._endpoint.upload_stream(io.BytesIO(image), mime_type)
        frames = 0
        while True:
            result = await job.predict()
            if result is None:
                break
            frames += 1
            yield result
        logger.debug("%s job finished after %d frame(s)", self._profile.value, frames)

    async def disconnect(self) -> None:
        await self._endpoint.disconnect()


class EyePopConnector:
    """
    Connection factory for both inference profiles.

    Args:
        secret_key:       EyePop API credential.
        pop_id:           UUID of the person-detection pop.
        detailed_ability: Ability name for the detailed image-contents component.
    """

    def __init__(self, secret_key: str, pop_id: str, detailed_ability: str):
        self._secret_key = secret_key
        self._pop_id = pop_id
        self._detailed_ability = detailed_ability

    def detailed_pop(self):
        """Build the capability configuration pushed to the detailed session."""
        from eyepop.worker.worker_types import InferenceComponent, Pop

        return Pop(
            components=[
                InferenceComponent(
                    ability=self._detailed_ability,
                    params={"prompts": [{"prompt": DETAILED_PROMPT}]},
                )
            ]
        )

    async def connect(self, profile: InferenceProfile) -> EyePopEndpoint:
        from eyepop import EyePopSdk

        pop_id = self._pop_id if profile is InferenceProfile.DETECT else TRANSIENT_POP_ID
        endpoint = EyePopSdk.workerEndpoint(
            pop_id=pop_id,
            secret_key=self._secret_key,
            is_async=True,
        )
        await endpoint.connect()

        if profile is InferenceProfile.DETAILED:
            logger.info("Pushing image-contents configuration (%s)", self._detailed_ability)
            await endpoint.set_pop(self.detailed_pop())

        return EyePopEndpoint(endpoint, profile)
