from tallyflow.dispatcher import Dispatcher, process_files
from tallyflow.models import BatchResult, FailureKind, TaskOutcome, TaskStatusKind
from tallyflow.ranking import find_top_words
from tallyflow.tokenizer import tokenize

__all__ = [
    "BatchResult",
    "Dispatcher",
    "FailureKind",
    "TaskOutcome",
    "TaskStatusKind",
    "find_top_words",
    "process_files",
    "tokenize",
]
