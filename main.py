"""
main.py
-------
Entry point for the healthcare appointment assistant FastAPI application.
Sets up routes and starts the server.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
import uvicorn
import logging

from config import load_clean_config
import auth_handler
import calendar_scheduler
import conversation
import dashboard
import database
from calendar_handler import CalendarError, UnknownCalendarMethod
from chat_agent import ChatAgent
from twilio_handler import handle_incoming_message

# Configure logging at the top
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
logger = logging.getLogger(__name__)

config = load_clean_config()
app = FastAPI(title="Healthcare Appointment Assistant")


class CalendarProxyRequest(BaseModel):
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)


class ToolExecuteRequest(BaseModel):
    tool: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: Optional[str] = None
    conversationHistory: List[ChatMessage] = Field(default_factory=list)


@app.get("/", response_class=HTMLResponse)
async def root():
    logger.info("Root endpoint accessed")
    return "<html><body><h1>Healthcare Appointment Assistant is running!</h1></body></html>"


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.post("/api/inbound")
async def inbound_message(request: Request):
    """Handles WhatsApp/SMS messages sent TO your Twilio number."""
    logger.info("Inbound message route triggered")
    return await handle_incoming_message(request)


@app.post("/api/mcp/calendar")
def calendar_proxy(payload: CalendarProxyRequest):
    """Forwards {method, params} to the calendar provider."""
    logger.info("Calendar proxy request: %s", payload.method)
    try:
        data = conversation.get_calendar().dispatch(payload.method, payload.params)
    except UnknownCalendarMethod as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=400)
    except (CalendarError, ValueError) as e:
        logger.error("Calendar proxy request failed: %s", str(e))
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    return {"success": True, "data": data}


@app.get("/api/calendar/events")
def calendar_events(timeMin: Optional[str] = None, timeMax: Optional[str] = None, maxResults: int = 10):
    try:
        return conversation.get_calendar().list_events(timeMin, timeMax, maxResults)
    except CalendarError as e:
        logger.error("Failed to fetch events: %s", str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch events")


@app.get("/api/tools")
async def list_tools():
    return {"tools": calendar_scheduler.TOOLS}


@app.post("/api/execute")
def execute_tool(payload: ToolExecuteRequest):
    logger.info("Executing scheduling tool %s", payload.tool)
    try:
        result = calendar_scheduler.execute_tool(conversation.get_calendar(), payload.tool, payload.parameters)
    except (calendar_scheduler.SchedulingError, CalendarError, ValueError) as e:
        logger.error("Tool execution failed: %s", str(e))
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    return {"success": True, "data": result}


@app.post("/api/chat")
def chat(payload: ChatRequest):
    if not payload.message or not payload.message.strip():
        return JSONResponse({"error": "Message is required"}, status_code=400)
    agent = ChatAgent(conversation.get_calendar())
    history = [message.model_dump() for message in payload.conversationHistory]
    return agent.process_message(payload.message, history)


@app.get("/api/doctors")
def doctors():
    try:
        return database.list_doctors()
    except database.DatabaseError as e:
        logger.error("Failed to load doctors: %s", str(e))
        raise HTTPException(status_code=500, detail="Failed to load doctors")


@app.get("/api/patients")
def patients():
    try:
        return database.list_patients()
    except database.DatabaseError as e:
        logger.error("Failed to load patients: %s", str(e))
        raise HTTPException(status_code=500, detail="Failed to load patients")


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard_page():
    try:
        summary = dashboard.dashboard_summary()
    except database.DatabaseError as e:
        logger.error("Failed to load dashboard: %s", str(e))
        raise HTTPException(status_code=500, detail="Failed to load dashboard")
    return dashboard.render_dashboard(summary)


@app.get("/auth/login")
async def login():
    return await auth_handler.handle_login()


@app.get("/auth/callback")
async def auth_callback(request: Request):
    return await auth_handler.handle_callback(request)


@app.get("/verify-database")
def verify_database():
    """Endpoint to verify database connection and table access."""
    logger.info("Database verification endpoint triggered")
    results = database.verify_database_access()
    return {
        "success": results["connection_success"] and results["tables_exist"],
        "details": results
    }


if __name__ == "__main__":
    logger.info("Starting FastAPI server on port %d", config["PORT"])
    uvicorn.run(app, host="0.0.0.0", port=config["PORT"])
