"""Read text files shipped as package data."""
from importlib.resources import as_file
from importlib.resources import files


def retrieve_from_library(package: str, filename: str) -> str:
    with as_file(files(package).joinpath(filename)) as path:
        with open(path, 'rt', encoding='utf-8') as file:
            contents = file.read()
    return contents
