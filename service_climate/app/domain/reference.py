"""
Static reference payloads describing sectors and colour schemes.
"""

SECTORS = [
    {
        "code": "AFS",
        "name": "Agriculture and Food Security",
        "description": "Indices relevant to agricultural productivity, crop yields, and food production systems",
    },
    {
        "code": "H",
        "name": "Hydrology",
        "description": "Indices relevant to hydrological processes, water cycles, and watershed management",
    },
    {
        "code": "WRH",
        "name": "Water Resources and Health",
        "description": "Indices associated with water availability, quality, and public health impacts",
    },
    {
        "code": "All",
        "name": "All Sectors",
        "description": "Indices relevant across all sectors and general climate monitoring",
    },
]

SECTOR_NAMES = {sector["code"]: sector["name"] for sector in SECTORS}

SECTOR_USAGE = {
    "multiple_sectors": (
        'When an index shows multiple sectors (e.g., "H, AFS, WRH"), it indicates the index '
        "is relevant to all listed sectors"
    ),
    "example": (
        'CDD (Consecutive Dry Days) is tagged as "H, AFS, WRH" because droughts impact '
        "hydrology, agriculture, and water resources/health"
    ),
}

COLOR_SCHEME_EXPLANATION = {
    "color_palette_type": "The CATEGORY of color scale (e.g., diverging, sequential, categorical)",
    "color_scheme": "The SPECIFIC palette name within that category (e.g., RdBu_r, BuRd)",
    "relationship": (
        "color_palette_type tells you HOW to apply colors, color_scheme tells you WHICH colors to use"
    ),
}

PALETTE_TYPES = {
    "diverging": {
        "description": "Two-directional gradient with a meaningful center point (used for anomalies)",
        "use_case": "Climate anomalies where zero = no change from baseline",
        "visual": "Blue <- White -> Red",
        "schemes_we_use": ["RdBu_r", "BuRd", "RdBu"],
    },
    "sequential": {
        "description": "Single-directional gradient from low to high",
        "use_case": "Absolute values with no meaningful center",
        "visual": "Light -> Dark",
        "schemes_we_use": [],
    },
}

_RED = "#b2182b (red)"
_WHITE = "#f7f7f7 (white)"
_BLUE = "#2166ac (blue)"

COLOR_SCHEMES = [
    {
        "name": "RdBu_r",
        "type": "diverging",
        "full_name": "Red-White-Blue (Reversed)",
        "direction": "Red for positive values, Blue for negative values",
        "usage": "Heat/drought indices where POSITIVE anomalies are BAD",
        "examples": ["CDD (more dry days)", "TXge30 (more hot days)", "WSDI (more heatwave days)"],
        "colors": {"negative": _BLUE, "zero": _WHITE, "positive": _RED},
    },
    {
        "name": "BuRd",
        "type": "diverging",
        "full_name": "Blue-White-Red",
        "direction": "Blue for positive values, Red for negative values",
        "usage": "Precipitation indices where POSITIVE anomalies are GOOD (more rain)",
        "examples": ["PRCPTOT (more rainfall)", "R10mm (more heavy rain days)", "CWD (longer wet spells)"],
        "colors": {"negative": _RED, "zero": _WHITE, "positive": _BLUE},
    },
    {
        "name": "RdBu",
        "type": "diverging",
        "full_name": "Red-White-Blue",
        "direction": "Red for negative values, Blue for positive values",
        "usage": "Cold indices where NEGATIVE anomalies show WARMING (fewer cold days)",
        "examples": ["FD (fewer frost days = warming)", "CSDI (fewer cold spells)", "TN10p (fewer cold nights)"],
        "colors": {"negative": _RED, "zero": _WHITE, "positive": _BLUE},
    },
]

IMPLEMENTATION_GUIDE = {
    "step_1": "Check color_palette_type to know which type of scale to create (diverging vs sequential)",
    "step_2": "Use color_scheme name to get the specific ColorBrewer palette",
    "step_3": "Use anomaly_direction to understand what the colors mean (is red bad or good?)",
    "example": {
        "index": "CDD",
        "color_palette_type": "diverging",
        "color_scheme": "RdBu_r",
        "anomaly_direction": "positive_bad",
        "interpretation": (
            "Use a diverging scale centered at zero, with the RdBu_r palette where "
            "red = positive values = bad (more drought)"
        ),
    },
}

BASELINE_PERIOD = "1995-2014"
