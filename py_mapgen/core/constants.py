"""Shared constants for elevation ranges and map palettes."""

# Elevation in meters
ELEVATION = {
    "MAX": 6000,
    "MIN": -4000,
    "SEA_LEVEL": 0,
    "RANGE": 10000,
}

TERRAIN_OCEAN = 0
TERRAIN_LAND = 1

NO_KINGDOM = -1
NO_DRAINAGE = -1
NO_LAKE = -1

# Muted parchment tones; neighbouring entries are visually close, so the
# kingdom coloring avoids palette neighbours of adjacent kingdoms' colors.
POLITICAL_COLORS = [
    "rgba(230, 218, 188, 0.5)",
    "rgba(212, 196, 160, 0.5)",
    "rgba(201, 203, 171, 0.5)",
    "rgba(218, 204, 180, 0.5)",
    "rgba(196, 189, 168, 0.5)",
    "rgba(216, 208, 184, 0.5)",
    "rgba(203, 191, 164, 0.5)",
    "rgba(208, 202, 174, 0.5)",
    "rgba(200, 196, 166, 0.5)",
    "rgba(221, 212, 188, 0.5)",
    "rgba(198, 188, 162, 0.5)",
    "rgba(212, 204, 176, 0.5)",
    "rgba(204, 202, 170, 0.5)",
    "rgba(217, 210, 186, 0.5)",
    "rgba(194, 186, 160, 0.5)",
    "rgba(214, 206, 173, 0.5)",
    "rgba(200, 194, 164, 0.5)",
    "rgba(220, 214, 190, 0.5)",
    "rgba(196, 190, 170, 0.5)",
    "rgba(210, 200, 172, 0.5)",
    "rgba(202, 198, 168, 0.5)",
    "rgba(216, 210, 182, 0.5)",
    "rgba(192, 188, 164, 0.5)",
    "rgba(212, 206, 178, 0.5)",
    "rgba(198, 194, 166, 0.5)",
    "rgba(218, 212, 184, 0.5)",
    "rgba(194, 190, 162, 0.5)",
    "rgba(208, 204, 176, 0.5)",
    "rgba(200, 196, 170, 0.5)",
    "rgba(220, 216, 188, 0.5)",
    "rgba(225, 210, 175, 0.5)",
    "rgba(190, 200, 175, 0.5)",
    "rgba(205, 195, 180, 0.5)",
    "rgba(215, 200, 165, 0.5)",
    "rgba(185, 195, 170, 0.5)",
    "rgba(210, 205, 190, 0.5)",
    "rgba(195, 185, 165, 0.5)",
    "rgba(220, 205, 175, 0.5)",
    "rgba(188, 198, 178, 0.5)",
    "rgba(208, 198, 168, 0.5)",
]

POLITICAL_OCEAN = "#C4CBBE"
POLITICAL_BORDER = "#6B5344"
