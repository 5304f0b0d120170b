"""Tests for concurrent speech synthesis."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from quiz_video.errors import DeadlineExceededError, SynthesisError
from quiz_video.models.video import QuizQuestion, VoiceSpec
from quiz_video.services.tts.orchestrator import TTSOrchestrator, option_label

FAKE_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00fake-mp3-frames"


@pytest.fixture
def orchestrator(mock_speech_provider, resources):
    return TTSOrchestrator(mock_speech_provider, resources, default_voice="nova", timeout=5)


@pytest.fixture
def two_option_questions():
    return [
        QuizQuestion(question="Is water wet?", options=["Yes", "No"], correctAnswer=0),
        QuizQuestion(question="Is fire cold?", options=["Yes", "No"], correctAnswer=1),
    ]


def test_option_label():
    assert option_label(0, "Paris") == "Option A: Paris"
    assert option_label(3, "Rome") == "Option D: Rome"


@pytest.mark.asyncio
async def test_synthesize_all_writes_index_aligned_assets(
    orchestrator, mock_speech_provider, sample_request, working_root
):
    assets = await orchestrator.synthesize_all("job1", sample_request.questions)

    assert len(assets) == 2
    first = assets[0]
    assert first.question_audio_path == working_root / "job1" / "question_0" / "question.mp3"
    assert first.option_audio_paths == [
        working_root / "job1" / "question_0" / f"option_{i}.mp3" for i in range(4)
    ]
    assert assets[1].option_audio_paths[2] == working_root / "job1" / "question_1" / "option_2.mp3"
    for asset in assets:
        for path in asset.all_paths():
            assert path.read_bytes() == FAKE_MP3

    # 2 questions + 8 options
    assert mock_speech_provider.synthesize.await_count == 10
    spoken = {call.args[0] for call in mock_speech_provider.synthesize.await_args_list}
    assert "What is the capital of India?" in spoken
    assert "Option B: New Delhi" in spoken
    assert "Option C: Mars" in spoken


@pytest.mark.asyncio
async def test_default_voice_used_without_override(orchestrator, mock_speech_provider, sample_request):
    await orchestrator.synthesize_all("job1", sample_request.questions)

    voices = {call.args[1] for call in mock_speech_provider.synthesize.await_args_list}
    assert voices == {"nova"}


@pytest.mark.asyncio
async def test_voice_override_is_applied(orchestrator, mock_speech_provider, sample_request):
    await orchestrator.synthesize_all(
        "job1", sample_request.questions, VoiceSpec(locale="en-US", name="shimmer")
    )

    voices = {call.args[1] for call in mock_speech_provider.synthesize.await_args_list}
    assert voices == {"shimmer"}


@pytest.mark.asyncio
async def test_single_failure_fails_whole_job(orchestrator, mock_speech_provider, two_option_questions):
    async def synthesize(text, voice):
        if text == "Is fire cold?":
            raise SynthesisError("TTS request failed: 500 - boom")
        return FAKE_MP3

    mock_speech_provider.synthesize = AsyncMock(side_effect=synthesize)

    with pytest.raises(SynthesisError) as exc_info:
        await orchestrator.synthesize_all("job1", two_option_questions)

    assert "boom" in str(exc_info.value)
    assert exc_info.value.job_id == "job1"
    # 2 questions + 4 options were all requested
    assert mock_speech_provider.synthesize.call_count == 6


@pytest.mark.asyncio
async def test_failure_cancels_outstanding_requests(orchestrator, mock_speech_provider, two_option_questions):
    cancelled = []

    async def synthesize(text, voice):
        if text == "Option A: Yes":
            raise SynthesisError("rejected")
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled.append(text)
            raise
        return FAKE_MP3

    mock_speech_provider.synthesize = AsyncMock(side_effect=synthesize)

    with pytest.raises(SynthesisError):
        await orchestrator.synthesize_all("job1", two_option_questions)

    assert cancelled
    assert "Option A: Yes" not in cancelled


@pytest.mark.asyncio
async def test_slow_provider_raises_deadline_exceeded(mock_speech_provider, resources, two_option_questions):
    async def synthesize(text, voice):
        await asyncio.sleep(5)
        return FAKE_MP3

    mock_speech_provider.synthesize = AsyncMock(side_effect=synthesize)
    orchestrator = TTSOrchestrator(mock_speech_provider, resources, timeout=0.05)

    with pytest.raises(DeadlineExceededError) as exc_info:
        await orchestrator.synthesize_all("job1", two_option_questions)

    assert "timed out" in str(exc_info.value)
