"""Integer code tables shared by the request handling workflow."""

# purpose: single source for status, outcome, and close reason codes plus their display labels
# status: active

from __future__ import annotations

from enum import IntEnum


class RequestStatusCode(IntEnum):
    AWAITING_CALL = 10
    IN_PROGRESS = 20
    PENDING_PICKUP = 30
    FINAL_OUTCOME = 40


class FinalOutcome(IntEnum):
    PURCHASED = 10
    SCRAPPED = 20
    NOT_PURCHASED = 30


class CloseReason(IntEnum):
    CUSTOMER_ASKS_TOO_MUCH = 10
    DEALER_DOES_NOT_COLLECT = 20
    RANGE_REJECTED = 30
    CUSTOMER_ALREADY_SOLD = 40
    NO_ANSWER = 50
    APPOINTMENT_FAILED = 60
    NO_OFFER = 70


STATUS_LABELS: dict[int, str] = {
    RequestStatusCode.AWAITING_CALL: "Awaiting call",
    RequestStatusCode.IN_PROGRESS: "In progress",
    RequestStatusCode.PENDING_PICKUP: "Pending pickup",
    RequestStatusCode.FINAL_OUTCOME: "Final outcome",
}

FINAL_OUTCOME_LABELS: dict[int, str] = {
    FinalOutcome.PURCHASED: "Purchased",
    FinalOutcome.SCRAPPED: "Scrapped",
    FinalOutcome.NOT_PURCHASED: "Not purchased",
}

CLOSE_REASON_LABELS: dict[int, str] = {
    CloseReason.CUSTOMER_ASKS_TOO_MUCH: "Customer asks too much",
    CloseReason.DEALER_DOES_NOT_COLLECT: "Dealer does not collect",
    CloseReason.RANGE_REJECTED: "Range rejected",
    CloseReason.CUSTOMER_ALREADY_SOLD: "Customer already sold the vehicle",
    CloseReason.NO_ANSWER: "No answer",
    CloseReason.APPOINTMENT_FAILED: "Appointment failed",
    CloseReason.NO_OFFER: "No offer",
}

# Close reasons whose selection obliges the caller to run an outbound action.
# Reasons missing from this table imply no action.
AUTOMATIC_ACTIONS: dict[int, str] = {
    CloseReason.DEALER_DOES_NOT_COLLECT: "email_customer",
}

VALID_STATUS_CODES = frozenset(int(code) for code in RequestStatusCode)


def code_tables() -> dict[str, list[dict]]:
    """Code tables as ``{value, label}`` lists for clients rendering selects."""

    def rows(labels: dict[int, str]) -> list[dict]:
        return [{"value": int(value), "label": label} for value, label in labels.items()]

    return {
        "statuses": rows(STATUS_LABELS),
        "final_outcomes": rows(FINAL_OUTCOME_LABELS),
        "close_reasons": [
            {**row, "automatic_action": AUTOMATIC_ACTIONS.get(row["value"])}
            for row in rows(CLOSE_REASON_LABELS)
        ],
    }
