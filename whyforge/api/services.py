"""Composition root shared by the HTTP and CLI adapters.

Builds one set of collaborators (completion client, catalog, offline cache,
pipelines) from environment-derived settings. Tests pass their own provider,
cache or settings instead of touching the network or the filesystem.
"""

import logging
from dataclasses import dataclass

from whyforge.core.answer_pipeline import AnswerPipeline
from whyforge.core.history import UserHistoryStore
from whyforge.core.question_pipeline import QuestionPipeline
from whyforge.core.settings import OfflineSettings, PipelineSettings
from whyforge.llm.client import CompletionProvider, HttpCompletionProvider
from whyforge.llm.provider_config import CompletionSettings
from whyforge.llm.service import CompletionClient
from whyforge.offline.cache import JsonCacheSnapshot, OfflineCache
from whyforge.prompting.tone_catalog import ToneCatalog


logger = logging.getLogger(__name__)


@dataclass
class Services:
    catalog: ToneCatalog
    offline_cache: OfflineCache
    question_pipeline: QuestionPipeline
    answer_pipeline: AnswerPipeline


def build_services(
    provider: CompletionProvider | None = None,
    completion_settings: CompletionSettings | None = None,
    pipeline_settings: PipelineSettings | None = None,
    offline_cache: OfflineCache | None = None,
    catalog: ToneCatalog | None = None,
) -> Services:
    completion_settings = completion_settings or CompletionSettings()
    pipeline_settings = pipeline_settings or PipelineSettings()

    if provider is None:
        provider = HttpCompletionProvider(completion_settings)
        logger.info(
            "Using %s completion provider (model=%s)",
            completion_settings.provider,
            completion_settings.model,
        )

    if offline_cache is None:
        offline_settings = OfflineSettings()
        snapshot = (
            JsonCacheSnapshot(offline_settings.snapshot_path)
            if offline_settings.snapshot_path
            else None
        )
        offline_cache = OfflineCache(offline_settings, snapshot=snapshot)

    catalog = catalog or ToneCatalog()
    client = CompletionClient(provider, completion_settings)

    question_pipeline = QuestionPipeline(
        client,
        catalog=catalog,
        offline_cache=offline_cache,
        history_store=UserHistoryStore(limit=pipeline_settings.history_limit),
        settings=pipeline_settings,
    )
    answer_pipeline = AnswerPipeline(client, catalog=catalog, offline_cache=offline_cache)

    return Services(
        catalog=catalog,
        offline_cache=offline_cache,
        question_pipeline=question_pipeline,
        answer_pipeline=answer_pipeline,
    )
