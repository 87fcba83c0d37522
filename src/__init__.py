"""DocWebsite backend: multi-tenant websites for dental practices.

Architecture Overview
=====================

Each doctor owns one or more **websites**.  A website publishes **service
pages** (one per catalog service) and **blogs**, both written by an LLM and
then parsed into structured, length-bounded sections before they are
stored in MongoDB.

1. **Generation**: ``LLMService`` renders a prompt and walks a provider
   fallback chain (Google AI → DeepSeek → Azure OpenAI → Anthropic) with a
   per-provider request budget and a response cache.

2. **Parsing**: ``content_parser`` turns the raw text into bullets,
   steps, FAQs, myths/facts and aftercare items, falling back to safe
   defaults when the text does not follow the expected shape.

3. **Persistence**: repositories over motor upsert pages by (website,
   service) and blogs by (website, service, blog type), so repeating a
   generation updates instead of duplicating.

4. **Calendar sync**: doctors sign in with Google; a push-notification
   channel on their calendar mirrors events into ``slots``.  An
   APScheduler job renews channels before they expire.

Package Structure
-----------------
- ``src/config.py`` — Centralized configuration from environment variables
- ``src/database.py`` — Motor connection, indexes and document helpers
- ``src/prompts.py`` — Prompt templates for page sections and blogs
- ``src/models/`` — Pydantic document models
- ``src/repositories/`` — MongoDB access per collection
- ``src/services/`` — LLM, parsing, generation, Google Calendar, webhooks and booking
- ``src/api/`` — FastAPI routers, schemas and the error envelope
- ``src/server.py`` — FastAPI application
- ``src/main.py`` — Command-line interface
"""
