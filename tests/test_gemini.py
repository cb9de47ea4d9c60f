import pytest
from google.api_core import exceptions as google_exceptions

from gemini_client import GeminiClient, SuggestionError, trim_to_char_limit, unique_attachments
from models import DescriptionSuggestionRequest, PhotoAttachment, TitleSuggestionRequest


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, name, outcome, calls):
        self.name = name
        self.outcome = outcome
        self.calls = calls

    async def generate_content_async(self, parts, generation_config=None):
        self.calls.append((self.name, parts, generation_config))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return FakeResponse(self.outcome)


@pytest.fixture
def calls():
    return []


def client_with(outcomes, calls, keys=("key-aaaaaa",)):
    client = GeminiClient(api_keys=list(keys), models=list(outcomes))
    client._get_model_with_key = lambda api_key, model_name: FakeModel(model_name, outcomes[model_name], calls)
    return client


def test_trim_to_char_limit():
    assert trim_to_char_limit("  Short title ", 60) == "Short title"
    assert trim_to_char_limit("", 10) == ""

    text = "Lovely handmade oak coffee table with storage"
    # Last space within the final 20 characters, so the word is not split
    assert trim_to_char_limit(text, 30) == "Lovely handmade oak coffee"
    # No space near the cut, so cut hard
    assert trim_to_char_limit("a" * 50, 30) == "a" * 30


def test_unique_attachments_by_file_and_url():
    photo = PhotoAttachment(name="a.jpg", size=10, last_modified=1, data=b"x" * 10)
    same = PhotoAttachment(name="a.jpg", size=10, last_modified=1, data=b"x" * 10)
    remote = PhotoAttachment(url="https://example.com/a.jpg")
    empty = PhotoAttachment(name="empty.jpg")

    result = unique_attachments([photo, same, remote, remote, empty])

    assert result == [photo, remote]


@pytest.mark.asyncio
async def test_rotation_skips_rate_limited_model(calls):
    client = client_with({
        "model-a": google_exceptions.ResourceExhausted("quota"),
        "model-b": "Oak writing desk with two drawers",
    }, calls)

    result = await client.suggest_title(TitleSuggestionRequest(locale="en", max_length=60))

    assert result.text == "Oak writing desk with two drawers"
    assert result.model == "model-b"
    assert [c[0] for c in calls] == ["model-a", "model-b"]
    assert calls[-1][2] == {"temperature": 0.7}
    assert "model-a:aaaaaa" in client._failed_combos


@pytest.mark.asyncio
async def test_all_combinations_exhausted(calls):
    client = client_with({"model-a": google_exceptions.ResourceExhausted("quota")}, calls,
                         keys=("key-111111", "key-222222"))

    with pytest.raises(SuggestionError):
        await client.suggest_description(DescriptionSuggestionRequest(locale="en"))

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_missing_key_raises():
    with pytest.raises(SuggestionError):
        await GeminiClient(api_keys=[]).suggest_title(TitleSuggestionRequest())


@pytest.mark.asyncio
async def test_description_is_trimmed(calls):
    client = client_with({"model-a": "word " * 200}, calls)

    result = await client.suggest_description(DescriptionSuggestionRequest(locale="pt", max_length=250))

    assert len(result.text) <= 250
    assert not result.text.endswith(" ")


@pytest.mark.asyncio
async def test_title_prompt_parts():
    client = GeminiClient(api_keys=[])
    request = TitleSuggestionRequest(
        locale="en",
        max_length=40,
        current_description="Blue sofa",
        location="Deira, Dubai",
        attachments=[
            PhotoAttachment(name="a.jpg", size=3, last_modified=1, data=b"abc"),
            PhotoAttachment(name="b.jpg", size=3, last_modified=1, data=b"def", mime_type="image/png"),
        ],
    )

    parts = await client.build_title_parts(request)
    text_parts = [p for p in parts if isinstance(p, str)]
    image_parts = [p for p in parts if isinstance(p, dict)]

    assert any("within 40 characters" in p for p in text_parts)
    assert any(p.startswith("Context:") and "Location: Deira, Dubai" in p for p in text_parts)
    assert any("Multiple distinct items" in p for p in text_parts)
    assert image_parts == [
        {"mime_type": "image/jpeg", "data": b"abc"},
        {"mime_type": "image/png", "data": b"def"},
    ]
    assert text_parts[-1] == "Focus on clarity and appeal. Reply with the title only."


@pytest.mark.asyncio
async def test_description_prompt_falls_back_to_title():
    client = GeminiClient(api_keys=[])
    request = DescriptionSuggestionRequest(locale="en", current_title="Road bike", max_length=300)

    parts = await client.build_description_parts(request)

    assert any("between 120 and 300 characters" in p for p in parts)
    assert any('listing title "Road bike"' in p for p in parts)
