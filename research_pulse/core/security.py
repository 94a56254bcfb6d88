from fastapi import Header, HTTPException, Request, status

def require_admin(request: Request, x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = request.app.state.pulse.settings.admin_token
    if expected is None:
        return
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")
