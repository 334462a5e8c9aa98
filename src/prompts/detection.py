"""
Region detection prompts.

The system instruction fixes the output contract; the user prompt carries the
free-text instruction for one page.
"""

DETECTION_SYSTEM_INSTRUCTION = """
You are an expert at document analysis and object detection.
Your task is to identify specific sections of an image based on the user's request.
Return a JSON list of detected items.
Each item must have a 'label' (short description) and 'box_2d' which is an object containing normalized coordinates: ymin, xmin, ymax, xmax.
Coordinates should be between 0 and 1000.

IMPORTANT:
- Provide slightly generous bounding boxes to ensure no text or margins are cut off.
- If detecting questions, include the question number and all options (A, B, C, D).

Example output format:
[
  { "label": "Question 1", "box_2d": { "ymin": 100, "xmin": 50, "ymax": 250, "xmax": 950 } },
  { "label": "Question 2", "box_2d": { "ymin": 260, "xmin": 50, "ymax": 400, "xmax": 950 } }
]
""".strip()


def build_detection_prompt(instruction: str) -> str:
    """
    Build the user turn sent alongside the page image.

    Args:
        instruction: What the user wants found ("every question", ...)

    Returns:
        Prompt text
    """
    return (
        f"User request: {instruction.strip()}. "
        "Please identify these parts and provide their bounding boxes "
        "carefully without cutting into text."
    )
