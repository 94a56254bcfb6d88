import asyncio
from unittest import mock

import pytest

from conftest import FakeModels, make_article, open_store, seed

from research_pulse.services.enrich import MetadataEnricher, embedding_text, parse_tags
from research_pulse.services.llm import ModelError
from research_pulse.services.store import StoreError

def tags_handler(prompt: str):
    return ["LLM", "Safety", "LLM", "Interpretability"]

def run_enrichment(db_path, models, **kwargs):
    async def go():
        async with open_store(db_path) as store:
            enricher = MetadataEnricher(store, models, batch_delay=0, **kwargs)
            stats = await enricher.enrich_missing()
            return stats, await store.list_articles(limit=None)

    return asyncio.run(go())

class TestParseTags:
    def test_accepts_array_or_object(self) -> None:
        assert parse_tags(["LLM", " RL ", "LLM"]) == ["LLM", "RL"]
        assert parse_tags({"tags": ["Vision"]}) == ["Vision"]

    def test_caps_at_four(self) -> None:
        assert parse_tags(["a", "b", "c", "d", "e"]) == ["a", "b", "c", "d"]

    @pytest.mark.parametrize("payload", [[], "LLM", {"labels": ["x"]}, [1, None, ""]])
    def test_rejects_unusable_payloads(self, payload) -> None:
        with pytest.raises(ModelError):
            parse_tags(payload)

class TestMetadataEnricher:
    def test_fills_missing_tags_and_embeddings(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article(f"https://x/{i}") for i in range(3)]))
        models = FakeModels(json_handler=tags_handler, dims=4)

        stats, articles = run_enrichment(db_path, models)

        assert stats.pending == 3
        assert stats.updated == 3
        assert all(a.tags == ["LLM", "Safety", "Interpretability"] for a in articles)
        assert all(a.embedding == [0.5] * 4 for a in articles)
        assert models.embed_calls[0] == embedding_text(articles[0])

    def test_second_pass_makes_no_model_calls(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article("https://x/a")]))
        run_enrichment(db_path, FakeModels(json_handler=tags_handler, dims=4))

        models = FakeModels(json_handler=tags_handler, dims=4)
        stats, _ = run_enrichment(db_path, models)

        assert stats.pending == 0
        assert models.embed_calls == []
        assert models.json_calls == []

    def test_only_missing_fields_are_computed(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article("https://x/a", tags=["Robotics"])]))
        models = FakeModels(json_handler=tags_handler, dims=4)

        _, (article,) = run_enrichment(db_path, models)

        assert models.json_calls == []
        assert len(models.embed_calls) == 1
        assert article.tags == ["Robotics"]
        assert article.embedding == [0.5] * 4

    def test_model_failure_leaves_fields_absent(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article("https://x/a")]))

        stats, (article,) = run_enrichment(db_path, FakeModels(embed_error=True))

        assert stats.updated == 0
        assert stats.tag_failures == 1
        assert stats.embedding_failures == 1
        assert article.tags is None
        assert article.embedding is None

    def test_partial_success_is_saved(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article("https://x/a")]))

        stats, (article,) = run_enrichment(db_path, FakeModels(json_handler=tags_handler, embed_error=True))

        assert stats.updated == 1
        assert article.tags == ["LLM", "Safety", "Interpretability"]
        assert article.embedding is None

    def test_progress_survives_a_later_store_failure(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article("https://x/a", days_ago=0), make_article("https://x/b", days_ago=1)]))
        models = FakeModels(json_handler=tags_handler, dims=4)

        async def go():
            async with open_store(db_path) as store:
                real_save = store.save

                async def save(articles):
                    if articles[0].link == "https://x/b":
                        raise StoreError("disk full")
                    return await real_save(articles)

                with mock.patch.object(store, "save", side_effect=save):
                    stats = await MetadataEnricher(store, models, batch_size=1, batch_delay=0).enrich_missing()
                return stats, {a.link: a for a in await store.list_articles()}

        stats, stored = asyncio.run(go())
        assert stats.updated == 1
        assert len(stats.errors) == 1
        assert stored["https://x/a"].embedding is not None
        assert stored["https://x/b"].embedding is None

    def test_window_limits_scan_unless_all(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article(f"https://x/{i}", days_ago=i) for i in range(4)]))

        async def go():
            async with open_store(db_path) as store:
                enricher = MetadataEnricher(store, FakeModels(json_handler=tags_handler, dims=4), batch_delay=0, window=2)
                windowed = await enricher.enrich_missing()
                everything = await enricher.enrich_missing(all_articles=True)
                return windowed, everything

        windowed, everything = asyncio.run(go())
        assert (windowed.scanned, windowed.updated) == (2, 2)
        assert (everything.scanned, everything.updated) == (4, 2)

    def test_sleeps_between_batches(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article(f"https://x/{i}") for i in range(5)]))

        async def go():
            async with open_store(db_path) as store:
                enricher = MetadataEnricher(store, FakeModels(json_handler=tags_handler, dims=4), batch_size=2, batch_delay=0.25)
                with mock.patch("research_pulse.services.enrich.asyncio.sleep", new=mock.AsyncMock()) as sleep:
                    await enricher.enrich_missing()
                return sleep

        sleep = asyncio.run(go())
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)
