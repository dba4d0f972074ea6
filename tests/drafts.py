"""Reference drafts with hand-checked metrics."""

# Six short action sentences, dialogue at 14/41 words, no stock phrasing.
SATURATED_TEXT = (
    '"Get down now, they have guns," Mara hissed. '
    "Bullets tore through the window glass. "
    "She dragged Tom behind the counter. "
    '"Stay low and follow me to the door," she said. '
    "They crawled toward the back exit. "
    "Smoke poured across the floor."
)

# The same scene with one stock phrase ("crucial") worked in.
PATTERNED_TEXT = SATURATED_TEXT.replace("the window glass", "the crucial window glass")

# One long sentence that names feelings instead of showing them.
WEAK_TEXT = (
    "He felt that the night was very cold and he thought that it was "
    "a bad sign for the trip."
)

# Two long descriptive sentences: no stock phrases, no dialogue, no action.
CALM_TEXT = (
    "The old harbor town sat under a grey sky while fishing boats drifted "
    "slowly toward the distant stone pier. "
    "Gulls circled above the market stalls where the merchants arranged baskets "
    "of bread and apples for the morning crowd."
)
