"""English / Indonesian language detection by marker-word counts."""

import re

ENGLISH_WORDS = re.compile(
    r"\b(the|you|and|to|is|are|i'm|it's|that|this|what|how|when|why|love|yes|no"
    r"|ok|please|thank|but|with|for|from|have|has|do|does|will|would|could|should"
    r"|can|be|been|get|got|go|going|come|see|know|think|want|need|like|feel|look"
    r"|good|bad|time|day|night|today|tomorrow|yesterday|sorry|thanks|hello|hi|bye"
    r"|hey|there|here|make|take|tell|ask|help|work|home|friend|people|thing|life"
    r"|new|some|more|much|very|too|so|just|now|then|only|back|after|before"
    r"|because|if|about|never|always|maybe|my|me|lost|job)\b",
    re.I,
)

INDONESIAN_WORDS = re.compile(
    r"\b(aku|kamu|iya|nggak|tidak|ngga|aja|dong|nih|ya|banget|sih|deh|lah|kan|gue"
    r"|lu|udah|belum|gimana|kenapa|dimana|kapan|siapa|sama|juga|masih|lagi|bisa"
    r"|mau|pengen|emang|memang|kayak|seperti|terus|tapi|atau|kalau|kalo|abis"
    r"|habis|dah|ada|gak|ga|tau|tahu|bener|beneran|serius|parah|anjay|wkwk\w*"
    r"|sayang|cinta|rindu|kangen|sedih|senang|bahagia|capek|lelah|ngantuk|lapar"
    r"|pusing|susah|gampang|selamat|pagi|siang|sore|malam|hari|maaf|terima|kasih"
    r"|tolong|bantu|minta|butuh|perlu|masalah|cerita|orang|teman|keluarga|rumah"
    r"|kerja|sekolah|kuliah|belajar|main|jalan|makan|minum|tidur|bikin|coba"
    r"|lihat|bilang)\b",
    re.I,
)

# Used only when the counts are too close to call.
STRONG_INDONESIAN = re.compile(
    r"\b(selamat|gimana|kenapa|dimana|siapa|dong|nih|banget|sih|deh|lah|gue|lu|gak|ga)\b",
    re.I,
)
STRONG_ENGLISH = re.compile(r"\b(hey|what|how|where|when|who|why|please|thanks)\b", re.I)

DOMINANCE_RATIO = 1.2


def detect_language(text: str) -> str:
    """Return ``english``, ``indonesian`` or ``mixed``."""
    english = len(ENGLISH_WORDS.findall(text))
    indonesian = len(INDONESIAN_WORDS.findall(text))

    if english > indonesian * DOMINANCE_RATIO:
        return "english"
    if indonesian > english * DOMINANCE_RATIO:
        return "indonesian"

    if STRONG_INDONESIAN.search(text):
        return "indonesian"
    if STRONG_ENGLISH.search(text):
        return "english"
    return "mixed"
