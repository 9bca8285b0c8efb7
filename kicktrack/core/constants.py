"""Global constants for the kicktrack application."""

# Collections
GAMES_COLLECTION = "games"
TOURNAMENTS_COLLECTION = "tournaments"
USERS_COLLECTION = "users"
VENUES_COLLECTION = "venues"

# Players
GUEST_PREFIX = "guest_"
NO_VENUE_ID = "none"

# Goal types
NORMAL = "normal"
GAMELLE = "gamelle"
GAMELLE_RENTRANTE = "gamelle_rentrante"
GOAL_TYPES = (NORMAL, GAMELLE, GAMELLE_RENTRANTE)
GAMELLE_TYPES = (GAMELLE, GAMELLE_RENTRANTE)

# Goal positions
GOALKEEPER = "goalkeeper"
DEFENSE = "defense"
MIDFIELD = "midfield"
ATTACK = "attack"
POSITIONS = (GOALKEEPER, DEFENSE, MIDFIELD, ATTACK)

# Games
GAME_IN_PROGRESS = "in_progress"
GAME_COMPLETED = "completed"
GAME_ABANDONED = "abandoned"
TARGET_SCORES = (6, 11)
DEFAULT_TARGET_SCORE = 6
MAX_PLAYERS_PER_TEAM = 2

# Tournaments
TOURNAMENT_TTL_MINUTES = 30
MIN_TOURNAMENT_TEAMS = 2
ROUND_ROBIN_MAX_TEAMS = 8
BRACKET_MAX_TEAMS = 64
POINTS_PER_WIN = 3

# Stats
RECENT_FORM_LIMIT = 5
