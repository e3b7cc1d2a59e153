"""
Crafty - Augmentation Engine
=============================
Renders retrieved chunks into a context block and composes the prompt
handed to the generation step.  Pure string work: no I/O, no state.
"""

from __future__ import annotations

from typing import Sequence

from crafty.config.prompt_templates import CONTEXT_CATEGORY_LINE, CONTEXT_DOCUMENT_HEADER, CONTEXT_MOD_LINE, CONTEXT_MODPACK_LINE, FALLBACK_PROMPT_TEMPLATE, PERSONA_PREAMBLE, RAG_INSTRUCTIONS, RAG_PROMPT_TEMPLATE
from crafty.src.database.models import Chunk


class PromptBuilder:
    """Builds context blocks, augmented prompts and the fallback prompt."""

    __slots__ = ()

    @staticmethod
    def build_context(chunks: Sequence[Chunk]) -> str:
        """
        Render *chunks* as numbered documents, in input order.

        Returns the empty string for an empty sequence.
        """
        if not chunks:
            return ""

        parts: list[str] = []
        for number, chunk in enumerate(chunks, 1):
            parts.append(CONTEXT_DOCUMENT_HEADER.format(number=number))
            if chunk.modpack is not None:
                parts.append(CONTEXT_MODPACK_LINE.format(value=chunk.modpack))
            if chunk.mod_name is not None:
                parts.append(CONTEXT_MOD_LINE.format(value=chunk.mod_name))
            if chunk.category is not None:
                parts.append(CONTEXT_CATEGORY_LINE.format(value=chunk.category))
            parts.append("\n")
            parts.append(chunk.text)
            parts.append("\n\n")

        return "".join(parts)


    def build_augmented_prompt(self, query: str, chunks: Sequence[Chunk]) -> str:
        """
        Persona + retrieved context + instructions + the verbatim query.

        Falls back to ``build_fallback_prompt`` when there is no context.
        """
        context = self.build_context(chunks)
        if not context:
            return self.build_fallback_prompt(query)

        return RAG_PROMPT_TEMPLATE.format(persona=PERSONA_PREAMBLE, context=context, instructions=RAG_INSTRUCTIONS, question=query)


    @staticmethod
    def build_fallback_prompt(query: str) -> str:
        """General Minecraft assistant prompt used when no context is available."""
        return FALLBACK_PROMPT_TEMPLATE.format(question=query)
