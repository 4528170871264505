# -*- coding: utf-8 -*-
"""
Command line entry point.

Builds or loads an engine, optionally exports it, and prints the output of
one inference pass on an image as space separated values.
"""
import argparse
import logging
import sys
import time
import traceback

import cv2

from trt_parser import Parser, ParserError, check_tensorrt_availability, load_config
from trt_parser.config import CONFIG_FILE
from trt_parser.utils import log_startup_info


def global_exception_hook(exctype, value, tb):
    """
    Global exception hook to catch all unhandled exceptions.
    """
    with open('error_log.txt', 'a', encoding='utf-8') as f:
        f.write(f"[Global Exception] {time.strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(''.join(traceback.format_exception(exctype, value, tb)))
        f.write('\n')
    print('An unhandled exception occurred. Details have been written to error_log.txt.')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='trt-parser',
        description='Build or load a TensorRT engine and run one inference pass',
    )
    parser.add_argument('model', help='ONNX graph (.onnx) or serialized engine (.trt/.engine/.plan)')
    parser.add_argument('image', nargs='?', help='Image to run inference on')
    parser.add_argument('--batch-size', type=int, default=1, help='Batch size (default: 1)')
    parser.add_argument('--config', default=CONFIG_FILE, help=f'Configuration file (default: {CONFIG_FILE})')
    parser.add_argument('--export', action='store_true', help='Write the compiled engine next to the model')
    parser.add_argument('--reuse', action='store_true', help='Load the exported engine when it exists')
    parser.add_argument('--warmup', type=int, default=0, help='Warmup iterations before inference')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    config = load_config(args.config)
    log_startup_info(enabled=config['run_log'], reset=True)
    if not check_tensorrt_availability():
        print('TensorRT environment not available, cannot build or load an engine')
        return 1

    try:
        if args.reuse:
            engine = Parser.load_or_build(args.model, args.batch_size, config)
        else:
            engine = Parser(args.model, args.batch_size, config)

        if args.export:
            if not engine.export():
                print(f'Cannot write engine file: {engine.engine_path}')
                return 1
            print(f'Engine saved to {engine.engine_path}')

        if args.image:
            image = cv2.imread(args.image)
            if args.warmup > 0:
                engine.warmup(args.warmup)
            result = engine.inference(image)
            print(' '.join(str(v) for v in result))
    except (ParserError, FileNotFoundError) as e:
        print(f'ERROR: {e}', file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.excepthook = global_exception_hook
    sys.exit(main())
