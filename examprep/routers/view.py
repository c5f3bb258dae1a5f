from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_shell
from ..schemas import ShellView
from ..shell import Shell

router = APIRouter()

def shell_view(shell: Shell) -> ShellView:
    return ShellView(
        view=shell.view.value,
        active_set_id=shell.active_set.id if shell.active_set else None,
        practice_id=shell.practice.id if shell.practice else None,
        set_count=len(shell.sets),
    )

@router.get("/view", response_model=ShellView)
def current_view(shell: Shell = Depends(get_shell)):
    return shell_view(shell)

@router.post("/view/dashboard", response_model=ShellView)
def to_dashboard(shell: Shell = Depends(get_shell)):
    shell.back_to_dashboard()
    return shell_view(shell)

@router.post("/view/sets/{set_id}", response_model=ShellView)
def to_set(set_id: str, shell: Shell = Depends(get_shell)):
    if shell.open_set(set_id) is None:
        raise HTTPException(404, "Question set not found.")
    return shell_view(shell)
