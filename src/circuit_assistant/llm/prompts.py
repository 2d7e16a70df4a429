"""Prompt templates for circuit analysis requests."""

# Bilingual so Chinese- and English-tuned models both pick up the domain.
SYSTEM_PROMPT = (
    "你是一个数字电路设计专家。用户会提供 logisim-evolution 的 circ 格式电路数据和问题。"
    "请分析电路并提供改进建议。\n"
    "You are an expert in digital circuit design. The user provides a question and, "
    "optionally, circuit data in logisim-evolution .circ format. "
    "Analyse the circuit and suggest improvements."
)

USER_QUESTION_PREFIX = "用户问题 / User question: "

CIRCUIT_DATA_HEADER = "电路数据 (circ格式) / Circuit data (circ format):\n"
