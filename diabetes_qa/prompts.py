"""Prompt templates for the diabetes assistant."""

# Query used to ground report analysis, independent of the user's message
REPORT_CONTEXT_QUERY = "blood glucose levels diabetes diagnosis normal range fasting random HbA1c"

VALIDATION_PROMPT = """Analyze this image and determine if it contains a blood test report with glucose/sugar levels.

Respond with ONLY "YES" if:
- This is a medical/lab blood test report
- Contains glucose, blood sugar, or HbA1c values

Respond with ONLY "NO" if:
- Not a medical report
- Any other type of image
- No glucose-related values present

Response (YES or NO):"""

REJECTION_MESSAGE = """I can only analyze blood glucose/sugar reports. This image doesn't appear to be a blood test report with glucose levels.

If you have questions about diabetes management, symptoms, or general diabetes information, feel free to ask!"""


def get_chat_prompt(context: str, question: str) -> str:
    """
    Render the chat prompt around the retrieved context and the user's question.

    The guidelines are instructions to the model; nothing here enforces them.

    Args:
        context: Retrieved passages joined into one block
        question: The user's question, verbatim

    Returns:
        Formatted prompt string
    """
    return f"""You are a helpful diabetes information assistant with access to a diabetes document.

Guidelines:
- For greetings (hi, hello): Respond warmly and ask how you can help with diabetes questions
- For "what do you do": Briefly explain you're a diabetes chatbot that answers questions from the document
- For diabetes questions: Provide clear, concise answers using the context below
- For symptoms or medical concerns: Answer based on the context if available, then add one line: "Please consult your doctor for personalized advice"
- Keep responses concise (2-4 sentences max unless detailed explanation needed)
- Use markdown formatting for better readability (**, -, bullet points, etc.)
- For off-topic questions: Politely say you only discuss diabetes-related topics

Context:
{context}

Question: {question}

Answer:"""


def get_analysis_prompt(context: str, question: str = "") -> str:
    """
    Render the structured blood report analysis prompt.

    Args:
        context: Retrieved passages about diagnostic ranges
        question: Optional question sent alongside the image

    Returns:
        Formatted prompt string
    """
    question_note = (
        f"\n\n**Your question:** {question}\n\n[Answer the question based on the report and document]"
        if question else ""
    )

    return f"""You are a medical AI assistant analyzing a blood test report for diabetes indicators.

**Context from diabetes medical document:**
{context}

**Your task:**
1. Extract all visible test parameters and their values from the image
2. Identify blood glucose, blood sugar, HbA1c, or related diabetes markers
3. Compare values against normal ranges (if visible or use standard medical ranges)
4. Provide assessment based on the medical document context above
5. Give actionable recommendations from the document

**Response format:**

## 📊 Blood Report Analysis

**Test Results:**
- [Parameter name]: [Value] [Unit] (Normal range: [range])
- [Continue for all visible parameters]

**Assessment:**
[Based on the values and the medical document, explain what the results indicate about diabetes risk/status]

**Key Findings:**
- [Finding 1]
- [Finding 2]
- [Continue as needed]

**Recommendations:**
[Provide recommendations from the diabetes document based on the results]

**⚠️ Important Disclaimer:**
This is an AI-generated analysis for informational purposes only. Please consult your doctor or healthcare provider for proper medical interpretation and treatment decisions.
{question_note}"""


def format_context(chunks: list) -> str:
    """
    Join retrieved passages, in rank order, separated by a blank line.

    Args:
        chunks: Retrieved passages (RetrievedPassage or Document)

    Returns:
        Context block
    """
    return "\n\n".join(
        chunk.content if hasattr(chunk, "content") else chunk.page_content
        for chunk in chunks
    )
