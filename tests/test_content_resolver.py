import asyncio

from job_orchestrator.content_resolver import (
    NON_RESUME_INSTRUCTION,
    RESUME_LABEL,
    ContentResolver,
    looks_like_resume,
)
from job_orchestrator.errors import TransportError
from job_orchestrator.guard import NON_RESUME_IMAGE_HINT, detect_job_intent
from job_orchestrator.models import ChatMessage, ContentPart, ImageURL


class FakeOCR:
    def __init__(self, texts):
        self.texts = texts
        self.urls = []

    async def parse_url(self, url):
        self.urls.append(url)
        outcome = self.texts[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def image_message(text, *urls):
    parts = [ContentPart(type="text", text=text)] if text else []
    parts += [ContentPart(type="image_url", image_url=ImageURL(url=u)) for u in urls]
    return ChatMessage(role="user", content=parts)


def resolve(ocr, message):
    return asyncio.run(ContentResolver(ocr).resolve([message]))[0]


def test_resume_detection():
    assert looks_like_resume("姓名：张三\n学历：本科\n工作经历：三年")
    assert looks_like_resume("Resume\nEducation: BSc\nSkills: Python")
    assert not looks_like_resume("Invoice for 3 office chairs")
    assert not looks_like_resume("")


def test_resume_image_is_labelled():
    ocr = FakeOCR({"http://f/cv.png": "姓名：张三\n学历：本科\n技能：Java"})

    message = resolve(ocr, image_message("what jobs fit me?", "http://f/cv.png"))

    assert message.content == f"what jobs fit me?\n\n{RESUME_LABEL}:\n姓名：张三\n学历：本科\n技能：Java"


def test_other_image_gets_hint_and_instruction():
    ocr = FakeOCR({"http://f/menu.png": "Lunch menu: noodles 12"})

    message = resolve(ocr, image_message(None, "http://f/menu.png"))

    assert message.content.startswith(f"{NON_RESUME_IMAGE_HINT}:\nLunch menu")
    assert message.content.endswith(NON_RESUME_INSTRUCTION)
    assert not detect_job_intent([message])


def test_ocr_failure_becomes_note():
    ocr = FakeOCR({"http://f/a.png": TransportError("OCR failed: timeout")})

    message = resolve(ocr, image_message("look", "http://f/a.png"))

    assert message.content == "look\n\n[Image parsing failed: OCR failed: timeout]"


def test_several_images_in_order():
    ocr = FakeOCR({"http://f/1.png": "one", "http://f/2.png": "two"})

    message = resolve(ocr, image_message("a", "http://f/1.png", "http://f/2.png"))

    assert ocr.urls == ["http://f/1.png", "http://f/2.png"]
    assert message.content.index("one") < message.content.index("two")


def test_plain_messages_untouched():
    ocr = FakeOCR({})
    message = ChatMessage(role="user", content="hello")

    assert resolve(ocr, message) is message
    assert ocr.urls == []
