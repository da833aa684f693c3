"""
Configuration settings for the gallery relay
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Server Configuration
WEBSITE_BASE_URL = os.getenv("WEBSITE_BASE_URL", "https://gallery.eberardos.my.id").rstrip("/")
PORT = int(os.getenv("PORT", "3000"))

# Backend selection: "quax" or "github" for bytes, "memory" or "github" for the index
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "quax")
INDEX_BACKEND = os.getenv("INDEX_BACKEND", "memory")

# Anonymous host
QUAX_UPLOAD_URL = os.getenv("QUAX_UPLOAD_URL", "https://qu.ax/upload.php")
QUAX_REFERER = os.getenv("QUAX_REFERER", "https://qu.ax/")
UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "30"))  # seconds

# Content store (GitHub contents API)
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
GITHUB_OWNER = os.getenv("GITHUB_OWNER", "gipicihuy")
GITHUB_REPO = os.getenv("GITHUB_REPO", "ebd-gallery")
GITHUB_BRANCH = os.getenv("GITHUB_BRANCH", "main")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")
GITHUB_UPLOAD_DIR = os.getenv("GITHUB_UPLOAD_DIR", "uploads")
INDEX_FILE_PATH = os.getenv("INDEX_FILE_PATH", "gallery-index.json")
INDEX_MAX_ATTEMPTS = int(os.getenv("INDEX_MAX_ATTEMPTS", "5"))

# Upload Configuration
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB, multipart uploads
MAX_BASE64_FILE_SIZE = int(4.5 * 1024 * 1024)  # 4.5MB, data URI uploads

# Short codes
SHORT_CODE_LENGTH = 6
SHORT_CODE_ATTEMPTS = 10

# Logging
LOG_DIR = os.getenv("LOG_DIR", ".")
