# ============================================
# board/selectors/project.py
# ============================================
from board.exceptions import NotFound
from board.models import Project, Sprint


class ProjectSelector:

    @staticmethod
    def get_project_by_key(key: str) -> Project:
        project = Project.objects.filter(key__iexact=key).first()
        if project is None:
            raise NotFound(f"Project {key} not found")
        return project

    @staticmethod
    def get_sprint(project: Project, sprint_id: int) -> Sprint:
        sprint = Sprint.objects.filter(project=project, id=sprint_id).first()
        if sprint is None:
            raise NotFound(f"Sprint {sprint_id} not found")
        return sprint
