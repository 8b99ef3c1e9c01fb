from studybuddy.models.dashboard import DashboardStats, StreakDays
from studybuddy.models.flashcard import (
    Deck,
    DeckCreate,
    DeckSummary,
    DeckUpdate,
    DueAt,
    DueFlashcard,
    DueFlashcards,
    DueStats,
    Flashcard,
    FlashcardCreate,
    FlashcardUpdate,
    NeverReviewed,
    Review,
    ReviewRequest,
    ReviewResult,
    ReviewState,
)
from studybuddy.models.gamification import (
    AchievementDefinition,
    GamificationResult,
    UserProgress,
    XPProgress,
)
from studybuddy.models.note import (
    Folder,
    FolderCreate,
    FolderDetail,
    FolderUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    Tag,
    TagCreate,
    TagDetail,
    TagUpdate,
)
from studybuddy.models.search import SearchFilters, SearchResult, SearchType
from studybuddy.models.task import Task, TaskCreate, TaskReorder, TaskUpdate

__all__ = [
    "AchievementDefinition",
    "DashboardStats",
    "Deck",
    "DeckCreate",
    "DeckSummary",
    "DeckUpdate",
    "DueAt",
    "DueFlashcard",
    "DueFlashcards",
    "DueStats",
    "Flashcard",
    "FlashcardCreate",
    "FlashcardUpdate",
    "Folder",
    "FolderCreate",
    "FolderDetail",
    "FolderUpdate",
    "GamificationResult",
    "NeverReviewed",
    "Note",
    "NoteCreate",
    "NoteUpdate",
    "Review",
    "ReviewRequest",
    "ReviewResult",
    "ReviewState",
    "SearchFilters",
    "SearchResult",
    "SearchType",
    "StreakDays",
    "Tag",
    "TagCreate",
    "TagDetail",
    "TagUpdate",
    "Task",
    "TaskCreate",
    "TaskReorder",
    "TaskUpdate",
    "UserProgress",
    "XPProgress",
]
