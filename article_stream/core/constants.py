# app.state attribute holding the GenerationService
CONFIG_GENERATION_SERVICE = "generation_service"
