"""
Keyword tables for language detection, intent classification and
entity extraction. Order matters: lists are scanned front to back.
"""

# =========================
# Language Detection
# =========================

# Weight of a single Devanagari code point anywhere in the text
DEVANAGARI_WEIGHT = 0.8

# Weight of each keyword hit
KEYWORD_WEIGHT = 0.1

MARATHI_KEYWORDS = [
    # Farming vocabulary
    "हवामान", "पिक", "शेत", "पाऊस", "रोग", "भाव", "बाजार", "पाणी", "खत", "बियाणे",
    "कापूस", "सोयाबीन", "ज्वारी", "बाजरी", "गहू", "तांदूळ", "मका", "ऊस", "कांदा",
    # Function words
    "माझ्या", "तुमच्या", "आहे", "नाही", "काय", "कसे", "कधी", "कुठे", "कोण",
    # Symptoms
    "पानावर", "झाडावर", "फळावर", "मूळावर", "डाग", "कीड", "रोगराई"
]

ENGLISH_KEYWORDS = [
    "weather", "crop", "farm", "rain", "disease", "price", "market", "water", "fertilizer", "seed",
    "cotton", "soybean", "wheat", "rice", "corn", "sugarcane", "onion",
    "my", "your", "is", "are", "not", "what", "how", "when", "where", "who",
    "leaf", "plant", "fruit", "root", "spot", "pest", "infection"
]

# =========================
# Intent Classification
# =========================

# Tie-break order: an earlier intent beats a later one with the same score
INTENT_PRIORITY = ("weather", "disease", "market", "advisory", "crop_health")

INTENT_KEYWORDS = {
    "weather": {
        "mr": ["हवामान", "पाऊस", "तापमान", "वारा", "ढग", "आर्द्रता", "अंदाज"],
        "en": ["weather", "rain", "temperature", "wind", "cloud", "humidity", "forecast", "climate"]
    },
    "disease": {
        "mr": ["रोग", "डाग", "कीड", "पानावर", "झाडावर", "पीक रोग", "कुजणे", "मुरझाणे"],
        "en": ["disease", "spot", "pest", "infection", "blight", "rot", "wilt", "fungus", "virus"]
    },
    "market": {
        "mr": ["भाव", "बाजार", "किंमत", "दर", "विकणे", "खरेदी", "मंडी"],
        "en": ["price", "market", "rate", "sell", "buy", "cost", "value", "mandi"]
    },
    "advisory": {
        "mr": ["सल्ला", "योजना", "अनुदान", "मदत", "कशी", "काय करावे", "पद्धत"],
        "en": ["advice", "scheme", "subsidy", "help", "how", "what to do", "method", "guidance"]
    },
    "crop_health": {
        "mr": ["पिकाचे आरोग्य", "वाढ", "फळे", "उत्पादन", "खत", "पाणी", "काळजी"],
        "en": ["crop health", "growth", "yield", "production", "fertilizer", "water", "care", "nutrition"]
    }
}

# =========================
# Entity Gazetteers
# =========================
# Each entry is (canonical name, word stems that identify it). Marathi
# stems include the oblique form the noun takes before case suffixes
# (कापूस -> कापसाच्या).

CROP_GAZETTEER = {
    "mr": [
        ("कापूस", ("कापूस", "कापसा")),
        ("सोयाबीन", ("सोयाबीन",)),
        ("ज्वारी", ("ज्वारी",)),
        ("बाजरी", ("बाजरी",)),
        ("गहू", ("गहू", "गव्हा")),
        ("तांदूळ", ("तांदूळ", "तांदळा")),
        ("मका", ("मका", "मक्या")),
        ("ऊस", ("ऊस", "उसा")),
        ("कांदा", ("कांदा", "कांद्या")),
        ("भात", ("भात",)),
        ("हरभरा", ("हरभरा", "हरभऱ्या"))
    ],
    "en": [
        ("cotton", ("cotton",)),
        ("soybean", ("soybean",)),
        ("sorghum", ("sorghum",)),
        ("millet", ("millet",)),
        ("wheat", ("wheat",)),
        ("rice", ("rice",)),
        ("corn", ("corn",)),
        ("sugarcane", ("sugarcane",)),
        ("onion", ("onion",)),
        ("chickpea", ("chickpea",)),
        ("groundnut", ("groundnut",))
    ]
}

DISEASE_GAZETTEER = {
    "mr": [
        ("पर्णरोग", ("पर्णरोग",)),
        ("मुळे कुजणे", ("मुळे कुजणे",)),
        ("पांढरी माशी", ("पांढरी माशी",)),
        ("तुडतुडे", ("तुडतुडे",)),
        ("कीड", ("कीड",)),
        ("बुरशी", ("बुरशी",)),
        ("विषाणु", ("विषाणु", "विषाणू"))
    ],
    "en": [
        ("leaf blight", ("leaf blight",)),
        ("root rot", ("root rot",)),
        ("whitefly", ("whitefly", "white fly")),
        ("aphid", ("aphid",)),
        ("pest", ("pest",)),
        ("fungus", ("fungus", "fungal")),
        ("virus", ("virus", "viral")),
        ("bacterial", ("bacterial",))
    ]
}

TIMEFRAMES = {
    "mr": ["आज", "उद्या", "परवा", "आठवड्यात", "महिन्यात"],
    "en": ["today", "tomorrow", "week", "month", "season", "year"]
}
