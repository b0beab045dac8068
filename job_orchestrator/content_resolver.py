"""Turns mixed text/image message content into plain text via OCR."""

import logging
from typing import List

from .errors import GatewayError
from .guard import NON_RESUME_IMAGE_HINT
from .models import ChatMessage
from .ocr_client import OCRClient

logger = logging.getLogger(__name__)


RESUME_KEYWORDS = [
    # Personal details
    "姓名", "性别", "年龄", "出生", "籍贯", "民族", "身份证",
    "电话", "手机", "邮箱", "邮件", "地址", "住址",
    # Education
    "学历", "学位", "毕业", "本科", "硕士", "博士", "大专", "高中",
    "专业", "院校", "大学", "学院", "在读", "应届",
    # Work history
    "工作经验", "工作经历", "任职", "就职", "离职", "在职",
    "公司", "企业", "单位", "部门", "岗位", "职位", "职务",
    # Skills
    "技能", "特长", "证书", "资格", "熟练", "精通", "掌握",
    # Self description
    "自我评价", "个人简介", "自我介绍", "个人总结", "求职意向",
    # Resume markers
    "简历", "履历", "个人资料", "基本信息", "联系方式",
    # English resumes
    "resume", "curriculum vitae", "education", "work experience",
    "skills", "objective", "phone", "email",
]

RESUME_KEYWORD_THRESHOLD = 3

RESUME_LABEL = "[Uploaded resume content]"
NON_RESUME_INSTRUCTION = (
    "[Important]: This image does not look like a resume. Ask the user what "
    "they want to do with it before helping. Do not assume they are looking for a job."
)


def looks_like_resume(text: str) -> bool:
    """At least RESUME_KEYWORD_THRESHOLD distinct resume keywords appear in ``text``."""
    if not text:
        return False

    lowered = text.lower()
    matches = 0
    for keyword in RESUME_KEYWORDS:
        if keyword in lowered:
            matches += 1
            if matches >= RESUME_KEYWORD_THRESHOLD:
                return True

    logger.info(f"OCR text matched {matches} resume keywords (threshold {RESUME_KEYWORD_THRESHOLD})")
    return False


class ContentResolver:
    """
    Resolves ``image_url`` content parts before the engine sees a message.

    Each image is sent through OCR and labelled as a resume or as some
    other image; OCR failures become an inline note so the turn goes on.
    """

    def __init__(self, ocr: OCRClient):
        self.ocr = ocr

    async def resolve(self, messages: List[ChatMessage]) -> List[ChatMessage]:
        return [await self.resolve_message(m) for m in messages]

    async def resolve_message(self, message: ChatMessage) -> ChatMessage:
        if not isinstance(message.content, list):
            return message

        text_parts = []
        image_parts = []
        for part in message.content:
            if part.type == "text":
                if part.text:
                    text_parts.append(part.text)
            elif part.type == "image_url" and part.image_url and part.image_url.url:
                image_parts.append(await self._describe_image(part.image_url.url))

        content = "\n".join(text_parts)
        if image_parts:
            if content:
                content += "\n\n"
            content += "\n\n".join(image_parts)

        return message.model_copy(update={"content": content})

    async def _describe_image(self, url: str) -> str:
        try:
            text = await self.ocr.parse_url(url)
        except GatewayError as e:
            logger.error(f"OCR failed for {url}: {e.message}")
            return f"[Image parsing failed: {e.message}]"

        logger.info(f"OCR parsed image ({len(text)} chars)")
        if looks_like_resume(text):
            return f"{RESUME_LABEL}:\n{text}"
        return f"{NON_RESUME_IMAGE_HINT}:\n{text}\n\n{NON_RESUME_INSTRUCTION}"
