"""Unit tests for the execution API client and response decoding."""

from __future__ import annotations

import pytest

from services.code_execution_service import (
    ApiError,
    CodeExecutionService,
    CompileError,
    MalformedResponseError,
    RunError,
    RunSuccess,
    StageResult,
    build_execution_payload,
    decode_execution_response,
)
from services.languages import Runtime, UnsupportedLanguageError, get_runtime


class TestDecodeExecutionResponse:
    def test_message_wins_over_everything(self):
        outcome = decode_execution_response({
            "message": "python-9.9.9 runtime is unknown",
            "run": {"code": 0, "output": "ignored"},
        })
        assert outcome == ApiError("python-9.9.9 runtime is unknown")
        assert outcome.error == "python-9.9.9 runtime is unknown"

    def test_empty_message_is_not_an_error(self):
        outcome = decode_execution_response({"message": "", "run": {"code": 0, "output": "x"}})
        assert isinstance(outcome, RunSuccess)

    def test_compile_failure_before_run(self):
        outcome = decode_execution_response({
            "compile": {"code": 1, "stderr": "error: expected ';'", "stdout": ""},
            "run": {"code": 0, "output": "never"},
        })
        assert isinstance(outcome, CompileError)
        assert outcome.error == "error: expected ';'"

    def test_compile_failure_without_run_section(self):
        outcome = decode_execution_response({"compile": {"code": 1, "stderr": "boom"}})
        assert isinstance(outcome, CompileError)

    def test_successful_compile_then_run(self):
        outcome = decode_execution_response({
            "compile": {"code": 0, "stdout": "", "stderr": ""},
            "run": {"code": 0, "stdout": "42\n", "output": "42\n"},
        })
        assert isinstance(outcome, RunSuccess)
        assert outcome.output == "42"

    def test_run_failure_falls_back_to_stdout_then_output(self):
        outcome = decode_execution_response({"run": {"code": 2, "stderr": "", "stdout": "", "output": "combined"}})
        assert isinstance(outcome, RunError)
        assert outcome.error == "combined"

    def test_killed_process_counts_as_failure(self):
        outcome = decode_execution_response({"run": {"code": None, "signal": "SIGKILL", "stderr": "killed"}})
        assert isinstance(outcome, RunError)
        assert outcome.stage.signal == "SIGKILL"

    def test_success_output_falls_back_to_stdout(self):
        outcome = decode_execution_response({"run": {"code": 0, "stdout": " out "}})
        assert outcome.output == "out"

    @pytest.mark.parametrize("body", [None, [], "text", 3])
    def test_non_object_body_is_rejected(self, body):
        with pytest.raises(MalformedResponseError):
            decode_execution_response(body)

    def test_missing_run_section_is_rejected(self):
        with pytest.raises(MalformedResponseError):
            decode_execution_response({"language": "python", "version": "3.10.0"})

    def test_non_object_stage_is_rejected(self):
        with pytest.raises(MalformedResponseError):
            decode_execution_response({"run": "done"})

    def test_non_integer_code_is_rejected(self):
        with pytest.raises(MalformedResponseError):
            decode_execution_response({"run": {"code": "0"}})


def test_stage_error_text_order():
    assert StageResult(code=1, stderr="e", stdout="o", output="x").error_text() == "e"
    assert StageResult(code=1, stdout="o", output="x").error_text() == "o"
    assert StageResult(code=1, output="x").error_text() == "x"
    assert StageResult(code=1).error_text() == "Exited with code 1"
    assert StageResult(code=None, signal="SIGKILL").error_text() == "Process terminated by SIGKILL"
    assert StageResult(code=None).error_text() == "Process exited without a status code"


def test_build_execution_payload():
    payload = build_execution_payload(Runtime("javascript", "18.15.0"), "console.log(1)")
    assert payload == {
        "language": "javascript",
        "version": "18.15.0",
        "files": [{"content": "console.log(1)"}],
    }


def test_language_table_lookup():
    assert get_runtime("typescript") == Runtime("typescript", "5.0.3")
    with pytest.raises(UnsupportedLanguageError) as info:
        get_runtime("brainfuck")
    assert isinstance(info.value, KeyError)
    assert "brainfuck" in str(info.value)


class TestCodeExecutionService:
    @pytest.mark.asyncio
    async def test_execute_sends_single_post(self, fake_session):
        session = fake_session({"run": {"code": 0, "output": "hi\n"}})
        svc = CodeExecutionService("https://piston.test/api/v2/piston/execute", session=session)
        outcome = await svc.execute("python", "print('hi')")
        assert isinstance(outcome, RunSuccess)
        assert len(session.calls) == 1
        assert session.calls[0]["json"]["version"] == "3.10.0"

    @pytest.mark.asyncio
    async def test_error_status_body_is_still_decoded(self, fake_session, fake_response):
        session = fake_session(fake_response({"message": "Too many requests"}, status=429))
        svc = CodeExecutionService("https://piston.test/execute", session=session)
        outcome = await svc.execute("go", "package main")
        assert outcome == ApiError("Too many requests")

    @pytest.mark.asyncio
    async def test_response_is_released(self, fake_session, fake_response):
        response = fake_response({"run": {"code": 0, "output": ""}})
        svc = CodeExecutionService("https://piston.test/execute", session=fake_session(response))
        await svc.execute("ruby", "puts 1")
        assert response.released is True

    @pytest.mark.asyncio
    async def test_unsupported_language_sends_nothing(self, fake_session):
        session = fake_session()
        svc = CodeExecutionService("https://piston.test/execute", session=session)
        with pytest.raises(UnsupportedLanguageError):
            await svc.execute("cobol", "x")
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_list_runtimes(self, fake_session):
        session = fake_session([
            {"language": "python", "version": "3.10.0", "aliases": ["py"]},
            "garbage",
        ])
        svc = CodeExecutionService("https://piston.test/api/v2/piston/execute", session=session)
        runtimes = await svc.list_runtimes()
        assert runtimes == [{"language": "python", "version": "3.10.0", "aliases": ["py"]}]
        assert session.calls[0]["method"] == "GET"
        assert session.calls[0]["url"] == "https://piston.test/api/v2/piston/runtimes"

    @pytest.mark.asyncio
    async def test_list_runtimes_rejects_non_list(self, fake_session):
        svc = CodeExecutionService("https://piston.test/execute", session=fake_session({"message": "nope"}))
        with pytest.raises(MalformedResponseError):
            await svc.list_runtimes()

    def test_default_url_comes_from_config(self):
        from config import config

        assert CodeExecutionService().api_url == config.EXECUTION_API_URL
