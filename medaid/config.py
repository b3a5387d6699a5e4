import os

from dotenv import load_dotenv

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# LLM configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "auto")
LLM_DEFAULT_TIER = os.getenv("LLM_DEFAULT_TIER", "fast")
LLM_MODEL_FAST = os.getenv("LLM_MODEL_FAST", "")
LLM_MODEL_STANDARD = os.getenv("LLM_MODEL_STANDARD", "")
LLM_MODEL_HIGH = os.getenv("LLM_MODEL_HIGH", "")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))

ASSISTANT_NAME = os.getenv("ASSISTANT_NAME", "MedAId")

# Durable profile record
DATABASE_PATH = os.getenv("DATABASE_PATH", "medaid.db")
PROFILE_RECORD_KEY = os.getenv("PROFILE_RECORD_KEY", "medaid_v2_profile")

# Perplexity Sonar API (facility search)
PERPLEXITY_API_KEY = os.getenv("PERPLEXITY_API_KEY", "")
PERPLEXITY_MODEL = os.getenv("PERPLEXITY_MODEL", "sonar")
FACILITY_SEARCH_TIMEOUT = float(os.getenv("FACILITY_SEARCH_TIMEOUT", "30"))
FACILITY_MAP_HOSTS = [
    host.strip().lower()
    for host in os.getenv(
        "FACILITY_MAP_HOSTS",
        "maps.google.com,google.com/maps,maps.app.goo.gl,goo.gl/maps,maps.apple.com,"
        "openstreetmap.org,bing.com/maps,yelp.com/biz,mapquest.com",
    ).split(",")
    if host.strip()
]
