"""
Configuration for the Java Tutorial app.
Loads settings from environment variables and an optional .env file.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.2")

# LLM sampling settings
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_TOP_K = int(os.getenv("LLM_TOP_K", "50"))
LLM_TOP_P = float(os.getenv("LLM_TOP_P", "0.9"))
# Quiz generation runs in JSON mode and wants steadier output
QUIZ_TEMPERATURE = float(os.getenv("QUIZ_TEMPERATURE", "0.2"))

# Where completed topics are kept between runs
PROGRESS_DIR = os.getenv("PROGRESS_DIR", "progress")

# Base address used when building shareable code links
APP_PUBLIC_URL = os.getenv("APP_PUBLIC_URL", "http://localhost:7860/")
SERVER_PORT = int(os.getenv("SERVER_PORT", "7860"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
