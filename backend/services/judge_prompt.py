# services/judge_prompt.py
# 오라클 시스템 프롬프트 / 사용자 메시지 구성
from typing import List

from schemas.audit_schema import Candidate, Message

JUDGE_SYSTEM_TEMPLATE = """
You judge whether an informal chat conversation (Hebrew, English, or a mix of both) is actually scheduling a meeting or an appointment.

[VALID]
- Setting a concrete meeting/appointment (work, personal, doctor, treatment, clinic).
- Confirming or rescheduling an already planned meeting, even casually ("ok set", "סבבה", "מסכים").
  When the current message is only a confirmation, read the earlier context messages for the details.

[INVALID]
- Past events ("we met yesterday", "היה לנו פגישה אתמול").
- Casual mentions of time or dates with no plan.
- Tentative talk with no confirmation ("maybe we'll meet", "אולי נפגש").

[DATES]
- Numeric dates are DD/MM/YYYY.
- Hebrew weekdays: ראשון=Sunday, שני=Monday, שלישי=Tuesday, רביעי=Wednesday, חמישי=Thursday, שישי=Friday, שבת=Saturday.
- "מחר" = tomorrow, "היום" = today, "בבוקר" = morning, "אחה״צ" = afternoon, "בערב" = evening.
- Resolve relative dates against today: {TODAY}.

[OUTPUT]
Respond with ONLY one JSON object, no other text:
{
  "isValidMeeting": boolean,
  "confidence": number (0-100),
  "dateTime": "YYYY-MM-DD HH:MM" or null,
  "location": string or null,
  "participants": [string] or null,
  "meetingType": string or null,
  "reasoning": "short explanation"
}
""".strip()


def build_user_prompt(candidate: Candidate, context: List[Message]) -> str:
    """
    후보 메시지와 문맥 메시지들을 오라클 입력 텍스트로 만든다.

    :param candidate: 판정 대상 후보
    :type candidate: Candidate
    :param context: 같은 대화의 인접 메시지(시간 오름차순)
    :type context: List[Message]
    :return: 사용자 프롬프트
    :rtype: str
    """

    lines = [
        "DETECTED MESSAGE:",
        f"From: {candidate.sender_name or 'Unknown'}",
        f'Text: "{candidate.raw_text}"',
        f"Keywords: {', '.join(candidate.keywords) or 'none'}",
    ]
    if candidate.candidate_date_tokens:
        lines.append(f"Detected dates: {', '.join(candidate.candidate_date_tokens)}")
    if candidate.candidate_time_tokens:
        lines.append(f"Detected times: {', '.join(candidate.candidate_time_tokens)}")
    if candidate.candidate_names:
        lines.append(f"Detected names: {', '.join(candidate.candidate_names)}")

    if context:
        lines.append("")
        lines.append("CONVERSATION CONTEXT (same chat, oldest first):")
        for i, msg in enumerate(context, 1):
            lines.append(f'[{i}] {msg.sender_name or msg.sender_id or "Unknown"}: "{msg.text}"')
    return "\n".join(lines)
