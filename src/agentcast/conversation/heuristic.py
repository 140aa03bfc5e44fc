"""Rule-based conversation synthesis.

The prompt is classified on two axes by keyword presence:
1) Payment intent: hand a payment sub-flow to the Venmo agent.
2) Call intent: hand a confirmation call sub-flow to the Phone agent.

The narrative is fixed: supervisor analysis, supervisor planning, the
sub-flows that apply, and a supervisor summary. Output depends only on the
prompt, except for the transaction id and phone number which come from the
injected random source.
"""

from __future__ import annotations

import random
import re

from agentcast.conversation.base import ConversationStep

PAYMENT_KEYWORDS = ("send", "pay", "transfer", "venmo", "$", "money", "payment")
CALL_KEYWORDS = ("call", "phone", "contact", "speak", "talk", "confirm", "ask")

DEFAULT_AMOUNT = "$50"
DEFAULT_RECIPIENT = "John"

_AMOUNT_PATTERN = re.compile(r"\$\d+(?:\.\d{1,2})?")
# Keyword is case-insensitive, the name itself must be capitalised.
_RECIPIENT_PATTERNS = (
    re.compile(r"\b(?i:to|send|pay|call)\s+([A-Z][a-z]+)"),
    re.compile(r"\b([A-Z][a-z]+)(?:\s+via|\s+and)\b"),
)


def needs_payment(prompt: str) -> bool:
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in PAYMENT_KEYWORDS)


def needs_call(prompt: str) -> bool:
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in CALL_KEYWORDS)


def extract_amount(prompt: str) -> str | None:
    """Return the first `$<digits>` amount, keeping cents when present."""
    match = _AMOUNT_PATTERN.search(prompt)
    return match.group(0) if match else None


def extract_recipient(prompt: str) -> str | None:
    for pattern in _RECIPIENT_PATTERNS:
        match = pattern.search(prompt)
        if match:
            return match.group(1)
    return None


class HeuristicConversationGenerator:
    """Local strategy that fabricates a plausible supervisor/phone/venmo exchange."""

    name = "local"
    # A payment + call flow has 17 steps.
    expected_steps = 17
    progress_scale = 100.0

    def __init__(self, *, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def generate(self, prompt: str) -> list[ConversationStep]:
        return self.build_flow(prompt)

    def build_flow(self, prompt: str) -> list[ConversationStep]:
        payment = needs_payment(prompt)
        call = needs_call(prompt)

        flow = [
            ConversationStep(
                agent="supervisor",
                message=f'Analyzing task: "{prompt}"',
                message_type="analysis",
            )
        ]

        subtasks = _subtasks(prompt, payment=payment, call=call)
        numbered = "\n".join(f"{index}. {item}" for index, item in enumerate(subtasks, start=1))
        flow.append(
            ConversationStep(
                agent="supervisor",
                message=f"Breaking down into subtasks:\n{numbered}",
                message_type="planning",
            )
        )

        if payment:
            flow.extend(self._venmo_flow(prompt))

        if payment and call:
            flow.append(
                ConversationStep(
                    agent="supervisor",
                    message="Payment completed successfully. Now delegating call task to Phone Agent...",
                    message_type="coordination",
                )
            )

        if call:
            flow.extend(self._phone_flow(prompt))

        flow.append(
            ConversationStep(
                agent="supervisor",
                message=_final_summary(prompt, payment=payment, call=call),
                message_type="completion",
            )
        )
        return flow

    def _venmo_flow(self, prompt: str) -> list[ConversationStep]:
        amount = extract_amount(prompt) or DEFAULT_AMOUNT
        recipient = extract_recipient(prompt) or DEFAULT_RECIPIENT
        transaction_id = "".join(str(self._rng.randint(0, 9)) for _ in range(9))
        return [
            ConversationStep(
                agent="supervisor",
                message="Delegating payment task to Venmo Agent...",
                message_type="delegation",
            ),
            ConversationStep(
                agent="venmo",
                message=f"Received payment request: {amount} to {recipient}",
                message_type="acknowledgment",
            ),
            ConversationStep(
                agent="venmo",
                message=f'Searching for contact "{recipient}" in Venmo contacts...',
                message_type="processing",
            ),
            ConversationStep(
                agent="venmo",
                message=f"Contact found: {recipient} Smith (@{recipient.lower()}smith_venmo)",
                message_type="success",
            ),
            ConversationStep(
                agent="venmo",
                message=f'Initiating payment of {amount} with note: "Payment as requested"',
                message_type="action",
            ),
            ConversationStep(
                agent="venmo",
                message=f"✅ Payment successful! Transaction ID: VM_{transaction_id}",
                message_type="success",
                metadata={"transactionId": f"VM_{transaction_id}", "amount": amount},
            ),
        ]

    def _phone_flow(self, prompt: str) -> list[ConversationStep]:
        recipient = extract_recipient(prompt) or DEFAULT_RECIPIENT
        phone_number = f"(555) {self._rng.randint(100, 999)}-{self._rng.randint(1000, 9999)}"
        plans = (
            "Discussing Friday dinner plans..."
            if "dinner" in prompt.lower()
            else "Discussing plans..."
        )
        return [
            ConversationStep(
                agent="phone",
                message=f"Received call request for {recipient} to confirm payment and discuss plans",
                message_type="acknowledgment",
            ),
            ConversationStep(
                agent="phone",
                message=f"Looking up contact information for {recipient}...",
                message_type="processing",
            ),
            ConversationStep(
                agent="phone",
                message=f"Found contact: {recipient} Smith - {phone_number}",
                message_type="success",
                metadata={"phoneNumber": phone_number},
            ),
            ConversationStep(
                agent="phone",
                message=f"Initiating call to {recipient}...",
                message_type="action",
            ),
            ConversationStep(
                agent="phone",
                message="📞 Call connected. Confirming Venmo payment...",
                message_type="progress",
            ),
            ConversationStep(
                agent="phone",
                message=f"{recipient} confirmed payment received. {plans}",
                message_type="progress",
            ),
            ConversationStep(
                agent="phone",
                message=f"✅ Call completed. {_call_outcome(prompt)}",
                message_type="success",
            ),
        ]


def _subtasks(prompt: str, *, payment: bool, call: bool) -> list[str]:
    subtasks: list[str] = []
    lowered = prompt.lower()
    recipient = extract_recipient(prompt)

    if payment:
        amount = extract_amount(prompt)
        parts = ["Venmo payment"]
        if amount:
            parts.append(f"of {amount}")
        if recipient:
            parts.append(f"to {recipient}")
        subtasks.append(" ".join(parts))

    if call:
        target = f" to {recipient}" if recipient else ""
        subtasks.append(f"Phone call{target} for confirmation")

    if "dinner" in lowered or "plans" in lowered:
        subtasks.append("Discuss future plans")

    return subtasks


def _call_outcome(prompt: str) -> str:
    lowered = prompt.lower()
    if "dinner" in lowered:
        return "Plans confirmed for dinner this Friday at 7 PM."
    if "lunch" in lowered:
        return "Lunch plans confirmed for tomorrow at noon."
    if "meeting" in lowered:
        return "Meeting scheduled for next week."
    return "Plans discussed and confirmed."


def _final_summary(prompt: str, *, payment: bool, call: bool) -> str:
    amount = extract_amount(prompt) or DEFAULT_AMOUNT
    recipient = extract_recipient(prompt) or DEFAULT_RECIPIENT
    lowered = prompt.lower()

    summary = "All tasks completed successfully!\n\n📋 Summary:\n"
    if payment:
        summary += f"• {amount} sent to {recipient} via Venmo ✅\n"
    if call:
        summary += "• Confirmation call completed ✅\n"
    # The closing bullet carries no trailing newline.
    if "dinner" in lowered:
        summary += "• Dinner plans confirmed for Friday 7 PM ✅"
    elif "lunch" in lowered:
        summary += "• Lunch plans confirmed ✅"
    elif call:
        summary += "• Plans discussed and confirmed ✅"
    return summary
