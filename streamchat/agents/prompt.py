TITLE_PROMPT = """Generate a concise, descriptive title (maximum {max_length} characters) for a chat conversation based on this first message:

"{message}"

The title should be:
- Descriptive and relevant to the conversation topic
- Maximum {max_length} characters
- Title Case, with no punctuation
- No quotes or special formatting

Title:"""


SELECTION_SYSTEM_PROMPT = (
    'The user has selected this text from a webpage: "{selection}". '
    "Please analyze this text and answer their question in relation to it. "
    "Reference specific parts of the selected text when relevant."
)


SELECTION_DISPLAY_TEMPLATE = '**Selected text:** "{selection}"\n\n**Question:** {question}'
