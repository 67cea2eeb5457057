"""
Excepciones del pipeline de tipo de renta de bicicletas.

Todas derivan de PipelineError para que el CLI pueda capturarlas en un solo lugar.
"""


class PipelineError(Exception):
    """Error base del pipeline."""


class LoadError(PipelineError):
    """Archivo inexistente, fila con número de columnas incorrecto o valor no parseable."""


class SchemaError(PipelineError):
    """El esquema de columnas es inconsistente o no coincide con los datos."""


class SplitError(PipelineError):
    """Fracción de test inválida o partición vacía."""


class FitError(PipelineError):
    """Falla al entrenar un candidato. Se registra y el candidato se descarta."""

    def __init__(self, name, cause):
        super().__init__(f"Candidato '{name}' falló: {cause}")
        self.name = name
        self.cause = cause


class SelectionError(PipelineError):
    """Ningún candidato se entrenó correctamente."""


class PersistError(PipelineError):
    """No se pudo escribir o leer el artefacto del modelo."""


class ConfigError(PipelineError):
    """Variable de entorno o argumento del CLI con un valor inválido."""
