from models.analysis import AnalysisType


def summarize_prompt(document_text: str) -> str:
    return (
        "Please provide a comprehensive summary of the following legal document in plain English. "
        "Cover the main purpose of the document, the parties involved, the key terms, and any "
        "significant obligations or rights. Write it for a reader without legal training.\n\n"
        f"{document_text}"
    )


def extract_clauses_prompt(document_text: str) -> str:
    return (
        "Analyze the following legal document and extract its key clauses. For each clause provide:\n"
        "1) clauseType: the kind of clause (e.g. 'Payment Terms', 'Termination', 'Liability')\n"
        "2) clauseText: the exact text of the clause as it appears in the document\n"
        "3) explanation: a plain English explanation of what the clause means\n"
        "4) importance: one of LOW, MEDIUM, HIGH, CRITICAL\n"
        "Format the result as a JSON array of objects with the fields "
        "clauseType, clauseText, explanation, importance.\n\n"
        f"{document_text}"
    )


def answer_question_prompt(question: str, document_text: str) -> str:
    return (
        f"Based on the following legal document, please answer this question: {question}\n\n"
        "Give a clear, accurate answer using only the information in the document. "
        "If the document does not contain the answer, say so explicitly.\n\n"
        f"Document content:\n{document_text}"
    )


def generate_template_prompt(template_type: str, requirements: str) -> str:
    return (
        f"Generate a simple legal {template_type} template based on these requirements: {requirements}\n\n"
        "Mark every placeholder field in [BRACKETS]. Include the standard clauses appropriate for this "
        "type of document. End with a disclaimer that this is a basic template and that review by a "
        "qualified lawyer is recommended."
    )


def build_prompt(analysis_type: AnalysisType, **inputs) -> str:
    """Map an analysis intent and its inputs to the final prompt text."""
    if analysis_type == AnalysisType.SUMMARY:
        return summarize_prompt(inputs["document_text"])
    if analysis_type == AnalysisType.CLAUSE_EXTRACTION:
        return extract_clauses_prompt(inputs["document_text"])
    if analysis_type == AnalysisType.QUESTION_ANSWER:
        return answer_question_prompt(inputs["question"], inputs["document_text"])
    if analysis_type == AnalysisType.TEMPLATE_GENERATION:
        return generate_template_prompt(inputs["template_type"], inputs.get("requirements", ""))
    raise ValueError(f"No prompt template for {analysis_type}")
