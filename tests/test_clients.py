"""
Tests for the external collaborators: Gemini, Mistral OCR, pandoc, settings.

No network and no pandoc binary are needed; the SDK clients are replaced
by small fakes exposing the same async methods.
"""

import asyncio
import subprocess
from types import SimpleNamespace

import pytest

from imtex.config import Settings, load_settings
from imtex.errors import InputInvalid, UpstreamUnavailable
from imtex.gemini_client import GeminiClient, build_prompt, extract_latex
from imtex.mistral_client import MistralOCR, image_reference
from imtex.utils import typesetter as typesetter_module
from imtex.utils.typesetter import PandocTypesetter


class FakeModels:
    def __init__(self, answers, delay=0.0):
        self.answers = answers
        self.delay = delay
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append(model)
        if self.delay:
            await asyncio.sleep(self.delay)
        answer = self.answers[model]
        if isinstance(answer, Exception):
            raise answer
        return SimpleNamespace(text=answer)


def gemini(answers, **overrides):
    models = FakeModels(answers)
    settings = Settings(gemini_api_key="test", gemini_model="primary", gemini_fallback_model="fallback", **overrides)
    client = GeminiClient(settings, client=SimpleNamespace(aio=SimpleNamespace(models=models)))
    return client, models


class TestExtractLatex:

    def test_latex_fence(self):
        assert extract_latex("Here:\n```latex\n\\section{A}\n```\nDone") == "\\section{A}"

    def test_other_fence(self):
        assert extract_latex("```\n\\section{A}\n```") == "\\section{A}"

    def test_bare_document(self):
        doc = "\\documentclass{article}\n\\begin{document}\n\\end{document}"
        assert extract_latex("  " + doc + "\n") == doc

    def test_unclosed_fence(self):
        assert extract_latex("```latex\n\\section{A}") == "\\section{A}"

    def test_plain_text(self):
        assert extract_latex("  just text ") == "just text"
        assert extract_latex("") == ""


class TestGeminiClient:

    def test_prompt_embeds_markdown(self):
        prompt = build_prompt("table", "| a | b |")
        assert prompt.startswith("## Task: tables")
        assert "<<<MARKDOWN\n| a | b |\nMARKDOWN>>>" in prompt

    def test_contents_prime_the_model(self):
        client, _ = gemini({})
        contents = client.contents("convert this")
        assert [c.role for c in contents] == ["user", "model", "user"]
        assert "LaTeX" in contents[0].parts[0].text
        assert contents[2].parts[0].text == "convert this"

    def test_primary_model_answers(self):
        client, models = gemini({"primary": "```latex\nx\n```", "fallback": "y"})
        assert asyncio.run(client.generate("p")) == "```latex\nx\n```"
        assert models.calls == ["primary"]

    def test_falls_back_to_second_model(self):
        client, models = gemini({"primary": RuntimeError("quota"), "fallback": "y"})
        assert asyncio.run(client.generate("p")) == "y"
        assert models.calls == ["primary", "fallback"]

    def test_empty_answer_counts_as_failure(self):
        client, models = gemini({"primary": "   ", "fallback": "y"})
        assert asyncio.run(client.generate("p")) == "y"
        assert models.calls == ["primary", "fallback"]

    def test_both_models_fail(self):
        client, _ = gemini({"primary": RuntimeError("a"), "fallback": RuntimeError("b")})
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(client.generate("p"))

    def test_timeout(self):
        client, models = gemini({"primary": "x", "fallback": "y"}, request_timeout=0.01)
        models.delay = 1.0
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(client.generate("p"))

    def test_same_fallback_is_not_retried(self):
        settings = Settings(gemini_api_key="k", gemini_model="m", gemini_fallback_model="m")
        assert GeminiClient(settings).models() == ["m"]


class FakePage:
    def __init__(self, data):
        self.data = data
        self.markdown = data.get("markdown", "")

    def model_dump(self):
        return dict(self.data)


class FakeOcrApi:
    def __init__(self, pages=None, error=None):
        self.pages = pages or []
        self.error = error
        self.requests = []

    async def process_async(self, model, document):
        self.requests.append((model, document))
        if self.error:
            raise self.error
        return SimpleNamespace(pages=self.pages)


def mistral(api):
    return MistralOCR(Settings(mistral_api_key="test"), client=SimpleNamespace(ocr=api))


class TestImageReference:

    def test_bytes_become_data_uri(self):
        assert image_reference(b"abc", "image/jpeg") == "data:image/jpeg;base64,YWJj"

    def test_default_mime(self):
        assert image_reference(b"abc").startswith("data:image/png;base64,")

    def test_url_passes_through(self):
        assert image_reference(" https://example.org/a.png ") == "https://example.org/a.png"

    def test_empty_upload(self):
        with pytest.raises(InputInvalid) as exc:
            image_reference(b"")
        assert exc.value.status_code == 400

    def test_non_image_upload(self):
        with pytest.raises(InputInvalid) as exc:
            image_reference(b"%PDF", "application/pdf")
        assert exc.value.status_code == 415

    def test_non_image_data_uri(self):
        with pytest.raises(InputInvalid) as exc:
            image_reference("data:application/pdf;base64,AAAA")
        assert exc.value.status_code == 415

    def test_garbage_reference(self):
        with pytest.raises(InputInvalid):
            image_reference("not a url")


class TestMistralOCR:

    def test_first_page_and_hints(self):
        api = FakeOcrApi(pages=[
            FakePage({"index": 0, "markdown": "# Title", "tables": [{"id": "t1"}]}),
            FakePage({"index": 1, "markdown": "ignored"}),
        ])
        result = asyncio.run(mistral(api).process("https://example.org/a.png"))
        assert result.markdown == "# Title"
        assert result.layout_hints == {"index": 0, "tables": [{"id": "t1"}]}
        model, document = api.requests[0]
        assert model == "mistral-ocr-latest"
        assert document == {"type": "image_url", "image_url": "https://example.org/a.png"}

    def test_no_pages(self):
        result = asyncio.run(mistral(FakeOcrApi()).process("https://example.org/a.png"))
        assert result.markdown == ""
        assert result.layout_hints is None

    def test_api_failure(self):
        with pytest.raises(UpstreamUnavailable) as exc:
            asyncio.run(mistral(FakeOcrApi(error=RuntimeError("401"))).process("https://x"))
        assert exc.value.message == "failed to process document structure"

    def test_missing_key(self):
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(MistralOCR(Settings()).process("https://x"))


class TestPandocTypesetter:

    def test_missing_binary(self):
        ts = PandocTypesetter(Settings(pandoc_path="no-such-pandoc-binary"))
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(ts.convert("# A"))

    def test_runs_pandoc(self, monkeypatch):
        seen = {}

        def fake_run(cmd, **kwargs):
            seen["cmd"] = cmd
            seen["input"] = kwargs["input"]
            return subprocess.CompletedProcess(cmd, 0, stdout="\\section{A}\n", stderr="")

        monkeypatch.setattr(typesetter_module.shutil, "which", lambda name: "/usr/bin/pandoc")
        monkeypatch.setattr(typesetter_module.subprocess, "run", fake_run)
        out = asyncio.run(PandocTypesetter(Settings()).convert("# A"))
        assert out == "\\section{A}\n"
        assert seen["cmd"][:3] == ["/usr/bin/pandoc", "-f", "markdown+tex_math_dollars+pipe_tables"]
        assert "--no-highlight" in seen["cmd"]
        assert seen["input"] == "# A"

    def test_nonzero_exit(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(2, cmd, stderr="bad input")

        monkeypatch.setattr(typesetter_module.shutil, "which", lambda name: "/usr/bin/pandoc")
        monkeypatch.setattr(typesetter_module.subprocess, "run", fake_run)
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(PandocTypesetter(Settings()).convert("# A"))

    def test_empty_output(self, monkeypatch):
        monkeypatch.setattr(typesetter_module.shutil, "which", lambda name: "/usr/bin/pandoc")
        monkeypatch.setattr(
            typesetter_module.subprocess,
            "run",
            lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="  \n", stderr=""),
        )
        with pytest.raises(UpstreamUnavailable):
            asyncio.run(PandocTypesetter(Settings()).convert("# A"))


class TestSettings:

    def test_defaults(self):
        s = load_settings({})
        assert s.mistral_ocr_model == "mistral-ocr-latest"
        assert s.gemini_model == "gemini-2.5-flash"
        assert s.gemini_fallback_model == "gemini-2.5-pro"
        assert s.enable_pandoc is True
        assert s.request_timeout == 60.0
        assert s.llm_enabled is False

    def test_from_env(self):
        s = load_settings({
            "GEMINI_API_KEY": "g",
            "ENABLE_PANDOC": "0",
            "REQUEST_TIMEOUT": "5",
            "LOG_LEVEL": "debug",
        })
        assert s.llm_enabled is True
        assert s.enable_pandoc is False
        assert s.request_timeout == 5.0
        assert s.log_level == "DEBUG"
