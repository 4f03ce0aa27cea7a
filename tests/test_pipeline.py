import json
import random
import time
from pathlib import Path

import pytest

from saol_lexicon.extraction import (
    BatchPipeline,
    InMemoryRunRepository,
    InputOpenError,
    InputStructureError,
    MarkupParseError,
    PipelineConfig,
    PipelineStage,
    RunState,
    SoupMarkupParser,
    WordClass,
)


class SlowParser(SoupMarkupParser):
    """Adds a random delay per document so workers finish out of order."""

    def __init__(self, seed: int = 7):
        super().__init__()
        self.random = random.Random(seed)

    def parse(self, markup):
        time.sleep(self.random.uniform(0, 0.005))
        return super().parse(markup)


class FlakyParser(SoupMarkupParser):
    def parse(self, markup):
        if "BROKEN" in markup:
            raise MarkupParseError("failed to parse markup: unbalanced entry")
        return super().parse(markup)


def article(i: int) -> dict:
    return {"html": f'<div class="page"><div class="article"><p>entry {i}</p></div></div>'}


def noun_lemma(word: str, plural: str) -> str:
    return (
        '<div class="lemma">'
        '<span class="ordklass">substantiv</span>'
        '<table class="tabell">'
        '<tr><th class="ordformth"><i>Singular</i></th></tr>'
        f"<tr><td>en {word}</td><td>obestämd form</td></tr>"
        '<tr><th class="ordformth"><i>Plural</i></th></tr>'
        f"<tr><td>{plural}</td><td>obestämd form</td></tr>"
        "</table></div>"
    )


def adjective_lemma(word: str) -> str:
    return (
        '<div class="lemma">'
        '<span class="ordklass">adjektiv</span>'
        '<table class="tabell">'
        '<tr><th class="ordformth"><i>Positiv</i></th></tr>'
        f"<tr><td>{word}</td></tr>"
        "</table></div>"
    )


def write_input(path: Path, entries) -> Path:
    path.write_text(json.dumps(entries, ensure_ascii=False), encoding="utf-8")
    return path


def make_config(tmp_path: Path, stage=PipelineStage.ARTICLES, workers=4, queue_size=2, **kwargs) -> PipelineConfig:
    return PipelineConfig(
        input_path=tmp_path / "input.json",
        output_path=tmp_path / "out" / "output.json",
        stage=stage,
        workers=workers,
        job_queue_size=queue_size,
        result_queue_size=queue_size,
        **kwargs,
    )


def read_output(config: PipelineConfig) -> dict:
    return json.loads(config.output_path.read_text(encoding="utf-8"))


def test_output_follows_input_order_despite_random_delays(tmp_path):
    config = make_config(tmp_path, workers=8)
    write_input(config.input_path, [article(i) for i in range(60)])

    summary = BatchPipeline(config, parser=SlowParser()).run()

    output = read_output(config)
    assert summary.processed == 60 and summary.records == 60
    assert list(output) == [str(k) for k in range(1, 61)]
    family_ids = [entry["familyID"] for entry in output.values()]
    assert family_ids == list(range(1, 61))
    assert all(output[str(i + 1)]["html"] == f"<p>entry {i}</p>" for i in range(60))


def test_failed_and_malformed_entries_do_not_affect_others(tmp_path):
    config = make_config(tmp_path)
    entries = [article(0), {"html": "<div class='article'>BROKEN</div>"}, article(2), {"markup": "no html"}, 17, article(5)]
    write_input(config.input_path, entries)
    repo = InMemoryRunRepository()

    summary = BatchPipeline(config, parser=FlakyParser(), repository=repo).run("run-1")

    output = read_output(config)
    assert summary.dispatched == 4
    assert summary.failed == 1
    assert summary.skipped == 2
    assert len(output) == len(entries) - summary.failed - summary.skipped
    # Skipped entries still consume their index, so family ids match source positions.
    assert [e["familyID"] for e in output.values()] == [1, 3, 6]
    assert [f.document_index for f in repo.list_failures("run-1")] == [1, 3, 4]
    run = repo.get_run("run-1")
    assert run.state == RunState.COMPLETED
    assert run.failed == 1 and run.skipped == 2 and run.records == 3


def test_missing_article_region_is_an_empty_success(tmp_path):
    config = make_config(tmp_path)
    write_input(config.input_path, [{"html": "<p>no article here</p>"}, article(1), {"html": ""}])
    repo = InMemoryRunRepository()

    summary = BatchPipeline(config, repository=repo).run("run-empty")

    assert summary.processed == 3
    assert summary.empty == 2
    assert summary.failed == 0
    assert read_output(config) == {"1": {"html": "<p>entry 1</p>", "familyID": 2}}
    assert repo.list_failures("run-empty") == []


def test_rerun_produces_identical_bytes(tmp_path):
    entries = [{"html": f'<div class="article">{noun_lemma("bil" + str(i), "bilar")}</div>'} for i in range(30)]
    first = make_config(tmp_path, stage=PipelineStage.WORDS, workers=6)
    write_input(first.input_path, entries)
    second = make_config(tmp_path, stage=PipelineStage.WORDS, workers=3)
    second.output_path = tmp_path / "out" / "second.json"

    BatchPipeline(first, parser=SlowParser(seed=1)).run()
    BatchPipeline(second, parser=SlowParser(seed=2)).run()

    assert first.output_path.read_bytes() == second.output_path.read_bytes()


def test_single_noun_lemma_yields_one_category_record(tmp_path):
    html = (
        "<div class=article><div class=lemma>"
        "<span class=ordklass>substantiv</span>"
        "<table class=tabell>"
        "<tr><th class=ordformth><i>Singular</i></th></tr>"
        "<tr><td>en bil</td><td>obestämd form</td></tr>"
        "</table></div></div>"
    )
    config = make_config(tmp_path, stage=PipelineStage.WORDS)
    write_input(config.input_path, [{"html": html}])

    summary = BatchPipeline(config).run()

    assert summary.records == 1
    assert read_output(config) == {
        "1": {"class": "substantiv", "forms": {"Singular": ["en bil-obestämd"], "Plural": []}, "familyID": 1}
    }


def test_lemmas_then_words_keeps_family_ids(tmp_path):
    entries = [
        {"html": f'<div class="article">{noun_lemma("bil", "bilar")}{adjective_lemma("stor")}</div>'},
        {"html": "<div class='article'></div>"},
        {"html": f'<div class="article">{noun_lemma("hus", "hus")}</div>'},
    ]
    lemmas = make_config(tmp_path, stage=PipelineStage.LEMMAS)
    write_input(lemmas.input_path, entries)
    BatchPipeline(lemmas).run()

    flattened = read_output(lemmas)
    assert [e["familyID"] for e in flattened.values()] == [1, 1, 3]
    assert all(e["html"].startswith('<div class="lemma">') for e in flattened.values())

    category_dir = tmp_path / "words"
    words = PipelineConfig(
        input_path=lemmas.output_path,
        output_path=tmp_path / "words.json",
        stage=PipelineStage.WORDS,
        workers=2,
        category_dir=category_dir,
    )
    BatchPipeline(words).run()

    output = json.loads(words.output_path.read_text(encoding="utf-8"))
    assert [(e["class"], e["familyID"]) for e in output.values()] == [("substantiv", 1), ("adjektiv", 1), ("substantiv", 3)]
    assert output["3"]["forms"] == {"Singular": ["en hus-obestämd"], "Plural": ["hus-obestämd"]}

    nouns = json.loads((category_dir / WordClass.NOUN.file_name).read_text(encoding="utf-8"))
    adjectives = json.loads((category_dir / WordClass.ADJECTIVE.file_name).read_text(encoding="utf-8"))
    verbs = json.loads((category_dir / WordClass.VERB.file_name).read_text(encoding="utf-8"))
    assert [n["forms"]["Singular"] for n in nouns] == [["en bil-obestämd"], ["en hus-obestämd"]]
    assert adjectives == [{"class": "adjektiv", "forms": {"Positiv": ["stor"], "Komparativ": [], "Superlativ": []}}]
    assert verbs == []


def test_unknown_word_classes_are_dropped(tmp_path):
    adverb = '<div class="lemma"><span class="ordklass">adverb</span></div>'
    config = make_config(tmp_path, stage=PipelineStage.WORDS)
    write_input(config.input_path, [{"html": adverb + adjective_lemma("glad")}])

    summary = BatchPipeline(config).run()

    assert summary.failed == 0
    assert [e["class"] for e in read_output(config).values()] == ["adjektiv"]


def test_structural_input_error_aborts_without_output(tmp_path):
    config = make_config(tmp_path)
    config.input_path.write_text('[{"html": "<div class=article>a</div>"}, {"html": ', encoding="utf-8")
    repo = InMemoryRunRepository()

    with pytest.raises(InputStructureError) as excinfo:
        BatchPipeline(config, repository=repo).run("run-bad")

    assert excinfo.value.stage == "dispatch"
    assert not config.output_path.exists()
    run = repo.get_run("run-bad")
    assert run.state == RunState.FAILED
    assert run.error_message.startswith("dispatch:")


def test_existing_output_untouched_when_input_is_not_a_collection(tmp_path):
    config = make_config(tmp_path)
    config.input_path.write_text('"not a list"', encoding="utf-8")
    config.output_path.parent.mkdir(parents=True)
    config.output_path.write_text("previous", encoding="utf-8")

    with pytest.raises(InputStructureError):
        BatchPipeline(config).run()

    assert config.output_path.read_text(encoding="utf-8") == "previous"


def test_missing_input_file_is_fatal(tmp_path):
    config = make_config(tmp_path)
    with pytest.raises(InputOpenError) as excinfo:
        BatchPipeline(config).run()
    assert excinfo.value.stage == "input"


def test_keyed_input_with_pre_assigned_family_ids(tmp_path):
    config = make_config(tmp_path, stage=PipelineStage.WORDS)
    keyed = {
        "1": {"html": noun_lemma("bok", "böcker"), "familyID": 40},
        "2": {"html": adjective_lemma("ny"), "familyID": 41},
    }
    config.input_path.write_text(json.dumps(keyed), encoding="utf-8")

    BatchPipeline(config).run()

    assert [e["familyID"] for e in read_output(config).values()] == [40, 41]


def test_non_utf8_input_marks_run_failed(tmp_path):
    config = make_config(tmp_path)
    config.input_path.write_bytes(b'[{"html": "\xff"}]')
    repo = InMemoryRunRepository()

    with pytest.raises(InputStructureError):
        BatchPipeline(config, repository=repo).run("run-latin1")

    run = repo.get_run("run-latin1")
    assert run.state == RunState.FAILED
    assert run.error_message.startswith("dispatch:")
    assert not config.output_path.exists()


def test_unexpected_error_marks_run_failed(tmp_path):
    config = make_config(tmp_path)
    write_input(config.input_path, [article(0)])
    repo = InMemoryRunRepository()
    pipeline = BatchPipeline(config, repository=repo)

    def refuse(entries):
        raise RuntimeError("disk quota")

    pipeline.storage.write_entries = refuse

    with pytest.raises(RuntimeError):
        pipeline.run("run-quota")

    run = repo.get_run("run-quota")
    assert run.state == RunState.FAILED
    assert run.error_message == "pipeline: disk quota"
