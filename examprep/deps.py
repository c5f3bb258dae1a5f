from fastapi import Depends, HTTPException, Request

from .schemas import QuestionSet
from .shell import Shell

def get_shell(request: Request) -> Shell:
    return request.app.state.shell

def require_set(set_id: str, shell: Shell = Depends(get_shell)) -> QuestionSet:
    found = shell.manager.get_set(set_id)
    if found is None:
        raise HTTPException(404, "Question set not found.")
    return found
