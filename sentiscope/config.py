import os

from dotenv import load_dotenv

load_dotenv()

# === Database ===
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/sentiscope.db")

# === Auth ===
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-replace-me")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-replace-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(60 * 24)))
JWT_REFRESH_EXPIRES_DAYS = int(os.getenv("JWT_REFRESH_EXPIRES_DAYS", "7"))

# === HuggingFace ===
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
HUGGINGFACE_API_URL = os.getenv(
    "HUGGINGFACE_API_URL",
    "https://router.huggingface.co/hf-inference/models/tabularisai/multilingual-sentiment-analysis",
)
HUGGINGFACE_DATASETS_URL = os.getenv("HUGGINGFACE_DATASETS_URL", "https://datasets-server.huggingface.co")
HF_REQUEST_DELAY = float(os.getenv("HF_REQUEST_DELAY", "0"))

# === OpenAI ===
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# === Storage (S3) ===
S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# === Uploads / OCR ===
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
OCR_LANG = os.getenv("OCR_LANG", "eng+ind")

# === HTTP ===
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
