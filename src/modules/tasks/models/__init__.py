from .task_assignment import TaskAssignment, ReportLink

__all__ = ['TaskAssignment', 'ReportLink']
