"""Prompt templates for retrieval-augmented generation."""

from __future__ import annotations

from langchain_core.prompts import PromptTemplate

QA_WITH_CONTEXT = PromptTemplate.from_template(
    """You are an AI tutor helping students learn. Use the following context to answer the question accurately.

Context:
{context}

Question: {question}

Provide a clear, educational answer based on the context. If the context doesn't contain enough information, say so.

Answer:"""
)

EXPLAIN_CONCEPT = PromptTemplate.from_template(
    """You are an expert educator. Based on the following learning materials, explain the concept to the student.

Learning Materials:
{context}

Student Level: {level}

Student Question: {question}

Provide a clear, step-by-step explanation suitable for the student's level. Use examples when helpful.

Explanation:""",
    partial_variables={"level": "beginner"},
)

ROADMAP_GUIDANCE = PromptTemplate.from_template(
    """You are a learning path advisor. Based on the student's progress and the roadmap content, provide guidance.

Roadmap Content:
{context}

Student Progress: {progress}

Question: {question}

Provide personalized guidance to help the student progress effectively.

Guidance:""",
    partial_variables={"progress": "Not provided"},
)


def format_context(contents: list[str]) -> str:
    """Join ranked passages, each tagged with a stable ``[n]`` marker."""
    return "\n\n".join(f"[{idx}] {content}" for idx, content in enumerate(contents, start=1))
