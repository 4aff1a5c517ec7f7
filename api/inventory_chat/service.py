import asyncio
import logging
from contextlib import asynccontextmanager

from .classifier import DEFAULT_CONFIDENCE_THRESHOLD, QueryClassifier, resolve
from .config import AppConfig, open_container, openai_client
from .errors import RequestTimeoutError
from .formatter import format_results
from .llm import FallbackResponder
from .lookup import DatasetStore

logger = logging.getLogger(__name__)


class ChatService:
    """One request's worth of classify -> look up -> format, with fallback."""

    def __init__(
        self,
        classifier: QueryClassifier,
        store: DatasetStore,
        responder: FallbackResponder,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        request_timeout: float = 25.0,
        max_listed: int = 10,
    ):
        self.classifier = classifier
        self.store = store
        self.responder = responder
        self.threshold = threshold
        self.request_timeout = request_timeout
        self.max_listed = max_listed

    async def _answer(self, user_message: str) -> str:
        classification = await self.classifier.classify(user_message)
        plan = resolve(classification, self.threshold)
        if plan is None:
            return await self.responder.reply(user_message)

        logger.info(
            "Searching %s, columns=%s", plan.dataset.filename, ", ".join(plan.columns)
        )
        columns, rows = await self.store.fetch_rows(plan.dataset.filename, plan.columns, plan.value)
        return format_results(plan.dataset, columns, plan.value, rows, self.max_listed)

    async def answer(self, user_message: str) -> str:
        try:
            return await asyncio.wait_for(self._answer(user_message), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(f"Request timed out after {self.request_timeout:g}s") from None

    async def casual(self, user_message: str) -> str:
        try:
            return await asyncio.wait_for(
                self.responder.casual_reply(user_message), timeout=self.request_timeout
            )
        except asyncio.TimeoutError:
            raise RequestTimeoutError(f"Request timed out after {self.request_timeout:g}s") from None


@asynccontextmanager
async def open_service(config: AppConfig):
    """Fresh clients for a single request, closed when it finishes."""
    llm = openai_client(config)
    try:
        async with open_container(config) as container:
            yield ChatService(
                classifier=QueryClassifier(llm, config.classifier_model, config.classify_timeout),
                store=DatasetStore(container),
                responder=FallbackResponder(llm, config.openai_model),
                threshold=config.confidence_threshold,
                request_timeout=config.request_timeout,
                max_listed=config.max_listed_matches,
            )
    finally:
        await llm.close()
