import random
from typing import Optional

PAIN_RESPONSE = (
    "For menstrual pain, some find relief with over-the-counter pain relievers, heating pads, or gentle yoga. "
    "If pain is severe or disruptive to daily life, it's important to consult with a healthcare provider."
)
CYCLE_VARIANCE_RESPONSE = (
    "Many factors can affect cycle length, including stress, exercise, weight changes, and more. "
    "If you're concerned about a missed period, a healthcare provider can help determine the cause."
)
FLOW_RESPONSE = (
    "Flow varies from person to person. Heavy flow that soaks through protection every hour "
    "or includes large clots should be discussed with a healthcare provider."
)

GENERIC_RESPONSES = (
    "I understand your concerns about your cycle. Remember that variations can be normal, but it's always best "
    "to consult with a healthcare provider for personalized advice.",
    "Thank you for sharing that information. While I can provide general guidance, your healthcare provider "
    "can offer advice specific to your situation.",
    "Many people experience similar symptoms. It's important to track them consistently to identify patterns, "
    "which can help when discussing with your doctor.",
    "Self-care is crucial during your period. Consider gentle exercise, staying hydrated, and using a heating pad for cramps.",
    "It's completely normal to have questions about your reproductive health. I'm here to provide information, "
    "but medical concerns should always be addressed by a healthcare professional.",
)

# Checked in order; the first group with a keyword in the message wins
KEYWORD_ROUTES = (
    (("pain", "cramp"), PAIN_RESPONSE),
    (("late", "missed"), CYCLE_VARIANCE_RESPONSE),
    (("heavy", "flow"), FLOW_RESPONSE),
)


# Deterministic keyword-routed reply used when no provider is configured or the provider fails
def get_mock_response(message: Optional[str], rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    if not isinstance(message, str) or not message:
        return rng.choice(GENERIC_RESPONSES)

    lowered = message.lower()
    for keywords, response in KEYWORD_ROUTES:
        if any(k in lowered for k in keywords):
            return response
    return rng.choice(GENERIC_RESPONSES)
