from pydantic import BaseModel


class TaskSums(BaseModel):
    """
    Figures aggregated over a task (and its whole subtree when it has sub tasks).

    All amounts are in hundredths of a day.
    """
    budget_sum: int = 0
    initially_consumed_sum: int = 0
    todo_sum: int = 0
    consumed_sum: int = 0
    contributions_nb: int = 0
