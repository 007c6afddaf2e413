"""
llmgateway - Multi-Provider LLM Completion Gateway

A single chat() entry point over OpenAI-compatible, Gemini, Ollama and
Anthropic backends, with a provider registry, strict parameter validation
and provider health checks.
"""

__version__ = "1.0.0"
__author__ = "llmgateway"
